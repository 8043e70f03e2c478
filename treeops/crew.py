"""
Live crew location tracking.

Supports an in-memory store for tests/local runs and a Redis hash for
production, keyed by crew_id with JSON-encoded location snapshots.
"""

from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from treeops.schemas import CrewLocationUpdate, CrewStatusUpdate

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3959
ACTIVE_WINDOW_MS = 10 * 60 * 1000
RECENT_WINDOW_MS = 5 * 60 * 1000
DEFAULT_ACCURACY = 10
SPEED_WARNING_MPH = 50
HEAVY_JOB_LOAD = 4

Location = dict[str, Any]


class CrewLocationStore(Protocol):
    """Minimal key/value interface for crew location snapshots."""

    def get(self, crew_id: str) -> Optional[Location]:
        ...

    def put(self, crew_id: str, location: Location) -> None:
        ...

    def delete(self, crew_id: str) -> bool:
        ...

    def all(self) -> list[Location]:
        ...


@dataclass
class InMemoryCrewLocationStore:
    """Dictionary-backed store for testing/dev."""

    locations: dict[str, Location] = field(default_factory=dict)

    def get(self, crew_id: str) -> Optional[Location]:
        location = self.locations.get(crew_id)
        return dict(location) if location else None

    def put(self, crew_id: str, location: Location) -> None:
        self.locations[crew_id] = dict(location)

    def delete(self, crew_id: str) -> bool:
        return self.locations.pop(crew_id, None) is not None

    def all(self) -> list[Location]:
        return [dict(loc) for loc in self.locations.values()]


@dataclass
class RedisCrewLocationStore:
    """Redis-backed store using a single hash of crew_id -> JSON."""

    url: str
    hash_key: str = "treeops:crew_locations"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _reconnect(self) -> None:
        self.client = redis.Redis.from_url(self.url)

    def get(self, crew_id: str) -> Optional[Location]:
        try:
            raw = self.client.hget(self.hash_key, crew_id)
        except redis_exceptions.ConnectionError:
            self._reconnect()
            raw = self.client.hget(self.hash_key, crew_id)
        return json.loads(raw) if raw else None

    def put(self, crew_id: str, location: Location) -> None:
        self.client.hset(self.hash_key, crew_id, json.dumps(location))

    def delete(self, crew_id: str) -> bool:
        return bool(self.client.hdel(self.hash_key, crew_id))

    def all(self) -> list[Location]:
        try:
            values = self.client.hvals(self.hash_key)
        except redis_exceptions.ConnectionError:
            self._reconnect()
            values = self.client.hvals(self.hash_key)
        return [json.loads(raw) for raw in values]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _round(value: float) -> int:
    return math.floor(value + 0.5)


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def has_valid_coordinates(coordinates: Any) -> bool:
    if not isinstance(coordinates, dict):
        return False
    return all(
        isinstance(coordinates.get(axis), (int, float))
        and not isinstance(coordinates.get(axis), bool)
        for axis in ("lat", "lng")
    )


def _movement(previous: Location, coordinates: dict, timestamp: int) -> dict:
    prev = previous["coordinates"]
    distance = haversine_miles(prev["lat"], prev["lng"], coordinates["lat"], coordinates["lng"])
    elapsed_ms = timestamp - previous["timestamp"]
    hours = elapsed_ms / (1000 * 60 * 60)
    return {
        "distance_moved": distance,
        "time_since_last_update": elapsed_ms,
        "estimated_speed": _round(distance / hours) if hours > 0 else 0,
    }


def movement_status(location: Location) -> str:
    movement = location.get("movement")
    if not movement:
        return "unknown"
    speed = movement["estimated_speed"]
    if speed < 1:
        return "stationary"
    if speed < 10:
        return "walking"
    if speed < 25:
        return "city_driving"
    if speed < 45:
        return "suburban_driving"
    return "highway_driving"


def accuracy_level(accuracy: float) -> str:
    if accuracy < 10:
        return "high"
    if accuracy < 50:
        return "medium"
    return "low"


def recommendations(location: Location) -> list[str]:
    advice = []
    movement = location.get("movement") or {}
    if movement.get("estimated_speed", 0) > SPEED_WARNING_MPH:
        advice.append("Consider reducing speed for safety")
    if len(location.get("assigned_jobs") or []) > HEAVY_JOB_LOAD:
        advice.append("Heavy job load - consider route optimization")
    return advice


def update_location(store: CrewLocationStore, payload: CrewLocationUpdate) -> Location:
    """
    Record a crew position, tracking movement since the previous update.

    Raises ValueError when crew_id or numeric coordinates are missing.
    """
    if not payload.crew_id or not has_valid_coordinates(payload.coordinates):
        raise ValueError("Missing required fields: crew_id, coordinates.lat, coordinates.lng")

    timestamp = _now_ms()
    coordinates = {"lat": payload.coordinates["lat"], "lng": payload.coordinates["lng"]}
    previous = store.get(payload.crew_id)

    location = payload.model_dump(exclude_none=True)
    location.update(
        {
            "crew_name": payload.crew_name or f"Crew {payload.crew_id}",
            "coordinates": coordinates,
            "accuracy": payload.accuracy or DEFAULT_ACCURACY,
            "timestamp": timestamp,
            "previous_coordinates": previous["coordinates"] if previous else None,
            "movement": _movement(previous, coordinates, timestamp) if previous else None,
        }
    )
    store.put(payload.crew_id, location)
    logger.debug("Crew %s at %s", payload.crew_id, coordinates)
    return location


def list_locations(
    store: CrewLocationStore,
    *,
    crew_id: Optional[str] = None,
    active_only: bool = False,
    within_radius: Optional[float] = None,
    center_lat: Optional[float] = None,
    center_lng: Optional[float] = None,
) -> list[Location]:
    now = _now_ms()
    locations = store.all()

    if crew_id:
        locations = [loc for loc in locations if loc.get("crew_id") == crew_id]

    if active_only:
        cutoff = now - ACTIVE_WINDOW_MS
        locations = [
            loc
            for loc in locations
            if loc["timestamp"] > cutoff and loc.get("status") == "active"
        ]

    if within_radius is not None and center_lat is not None and center_lng is not None:
        locations = [
            loc
            for loc in locations
            if haversine_miles(
                center_lat, center_lng, loc["coordinates"]["lat"], loc["coordinates"]["lng"]
            )
            <= within_radius
        ]

    for loc in locations:
        age_ms = now - loc["timestamp"]
        loc["time_since_update"] = _round(age_ms / 1000 / 60)
        loc["is_recent"] = age_ms < RECENT_WINDOW_MS
        loc["accuracy_level"] = accuracy_level(loc.get("accuracy", DEFAULT_ACCURACY))
        loc["movement_status"] = movement_status(loc)
    return locations


def update_status(store: CrewLocationStore, payload: CrewStatusUpdate) -> Optional[Location]:
    """Apply status/job changes; returns None when the crew is not tracked."""
    existing = store.get(payload.crew_id)
    if not existing:
        return None

    if payload.status:
        existing["status"] = payload.status
    for name in ("current_job", "notes"):
        if name in payload.model_fields_set:
            existing[name] = getattr(payload, name)
    if payload.assigned_jobs is not None:
        existing["assigned_jobs"] = payload.assigned_jobs
    existing["last_status_update"] = _now_ms()
    store.put(payload.crew_id, existing)
    return existing


def remove_crew(store: CrewLocationStore, crew_id: str) -> bool:
    removed = store.delete(crew_id)
    if removed:
        logger.info("Stopped tracking crew %s", crew_id)
    return removed
