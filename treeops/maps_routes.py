"""
Google Maps proxy routes for address entry, routing and crew scheduling.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Optional

import requests
from fastapi import APIRouter, Depends, HTTPException, Query

from treeops.dependencies import get_maps_client
from treeops.maps import (
    MAX_BATCH_ADDRESSES,
    MAX_ROUTE_WORK_ORDERS,
    GoogleMapsClient,
    MapsApiError,
)
from treeops.schemas import GeocodeBatchRequest, OptimizeRoutesRequest

logger = logging.getLogger(__name__)

router = APIRouter()

# Malformed upstream payloads surface as lookup/type errors while reshaping.
UPSTREAM_ERRORS = (requests.RequestException, KeyError, TypeError, ValueError)


def _require_key(maps: GoogleMapsClient) -> None:
    if not maps.configured:
        raise HTTPException(status_code=500, detail="Google Maps API key not configured")


def _require(value: Optional[str], message: str) -> str:
    if not value:
        raise HTTPException(status_code=400, detail=message)
    return value


@contextmanager
def _upstream(failure_message: str):
    try:
        yield
    except UPSTREAM_ERRORS as exc:
        logger.exception("%s", failure_message)
        raise HTTPException(status_code=500, detail=failure_message) from exc


@router.get("/autocomplete")
def autocomplete(
    input: Optional[str] = Query(None),
    sessiontoken: Optional[str] = Query(None),
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    _require_key(maps)
    text = _require(input, "Missing required parameter: input")
    with _upstream("Failed to fetch address suggestions"):
        return maps.autocomplete(text, session_token=sessiontoken)


@router.get("/place-details")
def place_details(
    place_id: Optional[str] = Query(None),
    sessiontoken: Optional[str] = Query(None),
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    _require_key(maps)
    place = _require(place_id, "Missing required parameter: place_id")
    with _upstream("Failed to fetch place details"):
        return maps.place_details(place, session_token=sessiontoken)


@router.get("/directions")
def directions(
    origin: Optional[str] = Query(None),
    destination: Optional[str] = Query(None),
    waypoints: Optional[str] = Query(None),
    mode: str = Query("driving"),
    avoid_tolls: bool = Query(False),
    avoid_highways: bool = Query(False),
    optimize: bool = Query(False),
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    _require_key(maps)
    if not origin or not destination:
        raise HTTPException(
            status_code=400,
            detail="Missing required parameters: origin and destination",
        )
    with _upstream("Failed to calculate route"):
        return maps.directions(
            origin,
            destination,
            waypoints=waypoints,
            mode=mode,
            avoid_tolls=avoid_tolls,
            avoid_highways=avoid_highways,
            optimize=optimize,
        )


@router.get("/geocode")
def geocode(
    address: Optional[str] = Query(None),
    components: Optional[str] = Query(None),
    region: Optional[str] = Query(None),
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    _require_key(maps)
    text = _require(address, "Missing required parameter: address")
    with _upstream("Failed to geocode address"):
        return maps.geocode(text, components=components, region=region)


@router.post("/geocode/batch")
def geocode_batch(
    payload: GeocodeBatchRequest,
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    _require_key(maps)
    if not payload.addresses:
        raise HTTPException(
            status_code=400, detail="Missing required parameter: addresses array"
        )
    if len(payload.addresses) > MAX_BATCH_ADDRESSES:
        raise HTTPException(
            status_code=400,
            detail=f"Maximum {MAX_BATCH_ADDRESSES} addresses allowed per batch request",
        )
    with _upstream("Failed to process batch geocoding"):
        return maps.geocode_batch(payload.addresses)


@router.get("/distance-matrix")
def distance_matrix(
    origins: Optional[str] = Query(None),
    destinations: Optional[str] = Query(None),
    mode: str = Query("driving"),
    units: str = Query("imperial"),
    avoid_tolls: bool = Query(False),
    avoid_highways: bool = Query(False),
    departure_time: str = Query("now"),
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    _require_key(maps)
    if not origins or not destinations:
        raise HTTPException(
            status_code=400,
            detail="Missing required parameters: origins and destinations",
        )
    with _upstream("Failed to calculate distance matrix"):
        return maps.distance_matrix(
            origins,
            destinations,
            mode=mode,
            units=units,
            avoid_tolls=avoid_tolls,
            avoid_highways=avoid_highways,
            departure_time=departure_time,
        )


@router.post("/distance-matrix/optimize")
def optimize_routes(
    payload: OptimizeRoutesRequest,
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    """
    Rank a crew's work orders for the day by travel time, distance, fuel or a blended score.
    """
    _require_key(maps)
    if not payload.work_orders:
        raise HTTPException(
            status_code=400, detail="Missing required parameter: work_orders array"
        )
    if len(payload.work_orders) > MAX_ROUTE_WORK_ORDERS:
        raise HTTPException(
            status_code=400,
            detail=f"Maximum {MAX_ROUTE_WORK_ORDERS} work orders allowed per optimization request",
        )
    if not any(wo.address for wo in payload.work_orders):
        raise HTTPException(
            status_code=400, detail="No valid addresses found in work orders"
        )
    try:
        with _upstream("Failed to optimize routes"):
            return maps.optimize_routes(
                [wo.model_dump() for wo in payload.work_orders],
                crew_location=payload.crew_location,
                optimize_for=payload.optimize_for,
                max_travel_time=payload.max_travel_time,
                departure_time=payload.departure_time,
            )
    except MapsApiError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
