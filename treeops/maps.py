"""
Google Maps web-service client and response reshaping.

The client forwards request parameters to the Places, Directions, Geocoding
and Distance Matrix JSON endpoints. The ``shape_*`` helpers turn Google's
payloads into the flatter structures the scheduling screens consume:
distances in miles, durations in minutes and a rough fuel estimate.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

MAPS_BASE_URL = "https://maps.googleapis.com/maps/api"
REQUEST_TIMEOUT = 30  # seconds

METERS_PER_MILE = 1609.34
FUEL_COST_PER_MILE = 0.15
PLACE_DETAIL_FIELDS = "address_components,formatted_address,geometry,name,place_id"
MAX_BATCH_ADDRESSES = 10
MAX_ROUTE_WORK_ORDERS = 25
DEFAULT_JOB_MINUTES = 120

CONFIDENCE_BY_LOCATION_TYPE = {
    "ROOFTOP": "high",
    "RANGE_INTERPOLATED": "medium",
}

PRIORITY_SCORES = {"urgent": 10, "high": 7, "medium": 5}
PRIORITY_WEIGHTS = {"urgent": 50, "high": 30, "medium": 15}


class MapsNotConfiguredError(RuntimeError):
    """Raised when no Google Maps API key is available."""


class MapsApiError(RuntimeError):
    """Raised when Google answers with a non-OK status."""

    def __init__(self, status: str):
        super().__init__(f"Distance Matrix API returned: {status}")
        self.status = status


def _round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def _round(value: float) -> int:
    return math.floor(value + 0.5)


def _miles(meters: float) -> float:
    return _round2(meters / METERS_PER_MILE)


def _fuel_cost(meters: float) -> float:
    return _round2(meters / METERS_PER_MILE * FUEL_COST_PER_MILE)


def _avoid_param(avoid_tolls: bool, avoid_highways: bool) -> Optional[str]:
    avoid = []
    if avoid_tolls:
        avoid.append("tolls")
    if avoid_highways:
        avoid.append("highways")
    return "|".join(avoid) if avoid else None


@dataclass
class GoogleMapsClient:
    """Thin wrapper over the Google Maps JSON web services."""

    api_key: Optional[str]
    timeout: float = REQUEST_TIMEOUT
    session: requests.Session = field(default_factory=requests.Session)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get(self, endpoint: str, params: dict, http: Any = None) -> dict:
        if not self.api_key:
            raise MapsNotConfiguredError("Google Maps API key not configured")
        query = {k: v for k, v in params.items() if v is not None}
        query["key"] = self.api_key
        response = (http or self.session).get(
            f"{MAPS_BASE_URL}/{endpoint}/json", params=query, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    def autocomplete(self, text: str, session_token: Optional[str] = None) -> dict:
        data = self._get(
            "place/autocomplete",
            {"input": text, "types": "address", "sessiontoken": session_token},
        )
        return {"predictions": data.get("predictions") or [], "status": data.get("status")}

    def place_details(self, place_id: str, session_token: Optional[str] = None) -> dict:
        data = self._get(
            "place/details",
            {
                "place_id": place_id,
                "fields": PLACE_DETAIL_FIELDS,
                "sessiontoken": session_token,
            },
        )
        return {"result": data.get("result"), "status": data.get("status")}

    def directions(
        self,
        origin: str,
        destination: str,
        *,
        waypoints: Optional[str] = None,
        mode: str = "driving",
        avoid_tolls: bool = False,
        avoid_highways: bool = False,
        optimize: bool = False,
    ) -> dict:
        waypoint_param = None
        if waypoints:
            waypoint_param = f"optimize:true|{waypoints}" if optimize else waypoints
        data = self._get(
            "directions",
            {
                "origin": origin,
                "destination": destination,
                "mode": mode,
                # Real-time traffic needs a departure time.
                "departure_time": "now",
                "waypoints": waypoint_param,
                "avoid": _avoid_param(avoid_tolls, avoid_highways),
            },
        )
        return shape_directions(data, waypoints)

    def geocode(
        self,
        address: str,
        *,
        components: Optional[str] = None,
        region: Optional[str] = None,
    ) -> dict:
        data = self._get(
            "geocode",
            {"address": address, "components": components, "region": region},
        )
        return shape_geocode(data)

    def _geocode_one(self, index: int, address: str) -> dict:
        # Runs on pool threads, which must not share self.session.
        try:
            data = self._get("geocode", {"address": address}, http=requests)
        except requests.RequestException:
            logger.exception("Geocoding failed for %r", address)
            return {
                "input_address": address,
                "index": index,
                "status": "error",
                "error": "Request failed",
            }
        results = data.get("results") or []
        if not results:
            return {
                "input_address": address,
                "index": index,
                "status": "failed",
                "error": data.get("status") or "No results found",
            }
        result = results[0]
        location = result["geometry"]["location"]
        return {
            "input_address": address,
            "index": index,
            "status": "success",
            "formatted_address": result.get("formatted_address"),
            "coordinates": {"lat": location["lat"], "lng": location["lng"]},
            "place_id": result.get("place_id"),
            "confidence": _confidence(result["geometry"].get("location_type")),
        }

    def geocode_batch(self, addresses: list[str]) -> dict:
        if not self.api_key:
            raise MapsNotConfiguredError("Google Maps API key not configured")
        with ThreadPoolExecutor(max_workers=max(1, len(addresses))) as pool:
            results = list(pool.map(self._geocode_one, range(len(addresses)), addresses))
        successful = sum(1 for r in results if r["status"] == "success")
        return {
            "batch_results": results,
            "total_processed": len(addresses),
            "successful": successful,
            "failed": len(results) - successful,
        }

    def distance_matrix(
        self,
        origins: str,
        destinations: str,
        *,
        mode: str = "driving",
        units: str = "imperial",
        avoid_tolls: bool = False,
        avoid_highways: bool = False,
        departure_time: str = "now",
    ) -> dict:
        data = self._get(
            "distancematrix",
            {
                "origins": origins,
                "destinations": destinations,
                "mode": mode,
                "units": units,
                "departure_time": departure_time,
                "avoid": _avoid_param(avoid_tolls, avoid_highways),
            },
        )
        return shape_distance_matrix(data, departure_time)

    def optimize_routes(
        self,
        work_orders: list[dict],
        *,
        crew_location: Optional[str] = None,
        optimize_for: str = "time",
        max_travel_time: float = 480,
        departure_time: str = "now",
    ) -> dict:
        """
        Rank work orders by travel cost from the crew (or the first job).

        Raises ValueError when no work order carries an address and
        MapsApiError when Google does not return an OK matrix.
        """
        destinations = [wo["address"] for wo in work_orders if wo.get("address")]
        if not destinations:
            raise ValueError("No valid addresses found in work orders")

        locations = [crew_location, *destinations] if crew_location else destinations
        joined = "|".join(locations)
        data = self._get(
            "distancematrix",
            {
                "origins": joined,
                "destinations": joined,
                "mode": "driving",
                "units": "imperial",
                "departure_time": departure_time,
            },
        )
        if data.get("status") != "OK":
            raise MapsApiError(data.get("status") or "UNKNOWN")

        first_row = (data.get("rows") or [{}])[0].get("elements") or []
        routes = []
        dest_index = 1 if crew_location else 0
        for work_order in work_orders:
            if not work_order.get("address"):
                continue
            element = first_row[dest_index] if dest_index < len(first_row) else None
            dest_index += 1
            if not element or element.get("status") != "OK":
                continue
            routes.append(_route_entry(work_order, element, optimize_for))

        routes.sort(key=_route_sort_key(optimize_for))
        return {
            "optimized_routes": routes,
            "optimization_summary": _optimization_summary(
                routes, optimize_for, max_travel_time
            ),
            "crew_location": crew_location,
            "optimization_timestamp": datetime.now(timezone.utc).isoformat(),
        }


def _confidence(location_type: Optional[str]) -> str:
    return CONFIDENCE_BY_LOCATION_TYPE.get(location_type or "", "low")


def _component(components: list[dict], kind: str, name: str = "long_name") -> Optional[str]:
    for component in components:
        if kind in component.get("types", []):
            return component.get(name)
    return None


def shape_directions(data: dict, waypoints: Optional[str] = None) -> dict:
    routes = []
    for route in data.get("routes") or []:
        legs = route.get("legs") or []
        distance = sum(leg["distance"]["value"] for leg in legs)
        duration = sum(leg["duration"]["value"] for leg in legs)
        in_traffic = sum(
            (leg.get("duration_in_traffic") or leg["duration"])["value"] for leg in legs
        )
        routes.append(
            {
                "summary": route.get("summary"),
                "distance": distance,
                "duration": duration,
                "duration_in_traffic": in_traffic,
                "start_address": legs[0].get("start_address") if legs else None,
                "end_address": legs[-1].get("end_address") if legs else None,
                "waypoint_order": route.get("waypoint_order"),
                "legs": [
                    {
                        "distance": leg.get("distance"),
                        "duration": leg.get("duration"),
                        "duration_in_traffic": leg.get("duration_in_traffic"),
                        "start_address": leg.get("start_address"),
                        "end_address": leg.get("end_address"),
                        "start_location": leg.get("start_location"),
                        "end_location": leg.get("end_location"),
                        "steps": len(leg.get("steps") or []),
                    }
                    for leg in legs
                ],
                "polyline": (route.get("overview_polyline") or {}).get("points"),
            }
        )

    metrics = None
    if routes:
        best = routes[0]
        metrics = {
            "total_distance_miles": _miles(best["distance"]),
            "total_duration_minutes": _round(best["duration"] / 60),
            "total_duration_with_traffic_minutes": _round(best["duration_in_traffic"] / 60),
            "traffic_delay_minutes": _round(
                (best["duration_in_traffic"] - best["duration"]) / 60
            ),
            "estimated_fuel_cost": _fuel_cost(best["distance"]),
            "crew_travel_time_minutes": _round(best["duration_in_traffic"] / 60),
            "jobs_in_route": len(waypoints.split("|")) if waypoints else 1,
        }

    first_route = (data.get("routes") or [{}])[0]
    return {
        "routes": routes,
        "metrics": metrics,
        "status": data.get("status"),
        "optimized_waypoints": first_route.get("waypoint_order") or [],
    }


def shape_geocode(data: dict) -> dict:
    results = []
    for result in data.get("results") or []:
        geometry = result.get("geometry") or {}
        location = geometry.get("location") or {}
        components = result.get("address_components") or []
        results.append(
            {
                "formatted_address": result.get("formatted_address"),
                "coordinates": {"lat": location.get("lat"), "lng": location.get("lng")},
                "location_type": geometry.get("location_type"),
                "viewport": geometry.get("viewport"),
                "place_id": result.get("place_id"),
                "types": result.get("types") or [],
                "address_components": [
                    {
                        "long_name": c.get("long_name"),
                        "short_name": c.get("short_name"),
                        "types": c.get("types"),
                    }
                    for c in components
                ],
                "confidence": _confidence(geometry.get("location_type")),
                "postal_code": _component(components, "postal_code"),
                "city": _component(components, "locality"),
                "state": _component(components, "administrative_area_level_1", "short_name"),
                "county": _component(components, "administrative_area_level_2"),
                "country": _component(components, "country", "short_name"),
            }
        )

    metrics = None
    if results:
        best = results[0]
        types = best["types"]
        metrics = {
            "accuracy_level": best["confidence"],
            "service_area": (
                f"{best['city']}, {best['state']}" if best["city"] and best["state"] else None
            ),
            "zip_code": best["postal_code"],
            "is_residential": "premise" in types or "street_address" in types,
            "is_commercial": "establishment" in types or "point_of_interest" in types,
            "coordinates_precision": best["location_type"],
        }

    return {
        "results": results,
        "metrics": metrics,
        "status": data.get("status"),
        "total_results": len(results),
    }


def _duration_block(block: dict, seconds: float) -> dict:
    return {
        "text": block.get("text"),
        "value": seconds,
        "minutes": _round(seconds / 60),
        "hours": _round2(seconds / 3600),
    }


def _shape_element(element: dict, destination: Optional[str], departure_time: str) -> dict:
    if element.get("status") != "OK":
        return {
            "destination_address": destination,
            "status": element.get("status"),
            "error": "Could not calculate route",
        }

    distance = element.get("distance") or {}
    duration = element.get("duration") or {}
    traffic = element.get("duration_in_traffic")
    meters = distance.get("value") or 0
    seconds = duration.get("value") or 0
    traffic_seconds = (traffic or {}).get("value") or seconds

    return {
        "destination_address": destination,
        "status": "OK",
        "distance": {
            "text": distance.get("text"),
            "value": meters,
            "miles": _miles(meters),
            "kilometers": _round2(meters / 1000),
        },
        "duration": _duration_block(duration, seconds),
        "duration_in_traffic": _duration_block(traffic, traffic_seconds) if traffic else None,
        "travel_metrics": {
            "estimated_fuel_cost": _fuel_cost(meters),
            "crew_travel_time": _round(traffic_seconds / 60),
            "traffic_delay": _round((traffic_seconds - seconds) / 60),
            # Average speed in mph.
            "efficiency_score": (
                math.floor((meters / METERS_PER_MILE) / (seconds / 3600) * 10 + 0.5) / 10
                if seconds > 0
                else 0
            ),
            "is_efficient": (traffic_seconds - seconds) < seconds * 0.25,
            "recommended_departure": "immediate" if departure_time == "now" else "scheduled",
        },
    }


def shape_distance_matrix(data: dict, departure_time: str = "now") -> dict:
    origin_addresses = data.get("origin_addresses") or []
    destination_addresses = data.get("destination_addresses") or []

    rows = []
    for origin_index, row in enumerate(data.get("rows") or []):
        elements = []
        for dest_index, element in enumerate(row.get("elements") or []):
            destination = (
                destination_addresses[dest_index]
                if dest_index < len(destination_addresses)
                else None
            )
            elements.append(_shape_element(element, destination, departure_time))
        rows.append(
            {
                "origin_address": (
                    origin_addresses[origin_index]
                    if origin_index < len(origin_addresses)
                    else None
                ),
                "elements": elements,
            }
        )

    valid = [el for row in rows for el in row["elements"] if el["status"] == "OK"]
    summary = {
        "total_routes": len(valid),
        "total_distance_miles": _round2(sum(el["distance"]["miles"] for el in valid)),
        "total_travel_time_minutes": sum(el["duration"]["minutes"] for el in valid),
        "total_travel_time_with_traffic": sum(
            (el["duration_in_traffic"] or el["duration"])["minutes"] for el in valid
        ),
        "total_fuel_cost": _round2(
            sum(el["travel_metrics"]["estimated_fuel_cost"] for el in valid)
        ),
        "average_efficiency": (
            sum(el["travel_metrics"]["efficiency_score"] for el in valid) / len(valid)
            if valid
            else 0
        ),
        "routes_with_delays": sum(
            1 for el in valid if el["travel_metrics"]["traffic_delay"] > 5
        ),
        "efficient_routes": sum(1 for el in valid if el["travel_metrics"]["is_efficient"]),
    }

    return {
        "origin_addresses": origin_addresses,
        "destination_addresses": destination_addresses,
        "rows": rows,
        "summary_metrics": summary,
        "status": data.get("status"),
    }


def optimization_score(
    travel_seconds: float, meters: float, priority: Optional[str], optimize_for: str
) -> float:
    time_score = max(0.0, 100 - travel_seconds / 60)
    distance_score = max(0.0, 100 - meters / METERS_PER_MILE)
    priority_score = PRIORITY_WEIGHTS.get(priority or "", 0)

    if optimize_for == "time":
        return time_score * 0.7 + priority_score * 0.3
    if optimize_for == "distance":
        return distance_score * 0.7 + priority_score * 0.3
    if optimize_for == "fuel":
        return distance_score * 0.5 + time_score * 0.2 + priority_score * 0.3
    return (time_score + distance_score) / 2 + priority_score * 0.2


def _route_entry(work_order: dict, element: dict, optimize_for: str) -> dict:
    travel_seconds = (
        (element.get("duration_in_traffic") or {}).get("value")
        or (element.get("duration") or {}).get("value")
        or 0
    )
    meters = (element.get("distance") or {}).get("value") or 0
    job_minutes = work_order.get("estimated_duration") or DEFAULT_JOB_MINUTES
    travel_minutes = _round(travel_seconds / 60)
    priority = work_order.get("priority")
    return {
        "work_order_id": work_order.get("id"),
        "address": work_order.get("address"),
        "estimated_duration": job_minutes,
        "travel_time": travel_minutes,
        "distance_miles": _miles(meters),
        "fuel_cost": _fuel_cost(meters),
        "total_time": travel_minutes + job_minutes,
        "priority_score": PRIORITY_SCORES.get(priority or "", 3),
        "optimization_score": optimization_score(
            travel_seconds, meters, priority, optimize_for
        ),
    }


def _route_sort_key(optimize_for: str):
    if optimize_for == "time":
        return lambda r: r["total_time"]
    if optimize_for == "distance":
        return lambda r: r["distance_miles"]
    if optimize_for == "fuel":
        return lambda r: r["fuel_cost"]
    return lambda r: -r["optimization_score"]


def _optimization_summary(
    routes: list[dict], optimize_for: str, max_travel_time: float
) -> dict:
    travel = sum(r["travel_time"] for r in routes)
    work = sum(r["estimated_duration"] for r in routes)
    distance = sum(r["distance_miles"] for r in routes)
    fuel = sum(r["fuel_cost"] for r in routes)
    return {
        "total_jobs": len(routes),
        "total_travel_time": travel,
        "total_work_time": work,
        "total_day_time": travel + work,
        "total_distance_miles": _round2(distance),
        "total_fuel_cost": _round2(fuel),
        "optimization_criteria": optimize_for,
        "within_time_limit": travel + work <= max_travel_time,
        "efficiency_rating": (
            math.floor(len(routes) / distance * 10 + 0.5) / 10 if distance > 0 else 0
        ),
    }
