"""
Crew location tracking routes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from treeops import crew
from treeops.crew import CrewLocationStore
from treeops.dependencies import get_crew_location_store
from treeops.schemas import CrewLocationUpdate, CrewStatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/location")
def list_locations(
    crew_id: Optional[str] = Query(None),
    active_only: bool = Query(False),
    within_radius: Optional[float] = Query(None),
    center_lat: Optional[float] = Query(None),
    center_lng: Optional[float] = Query(None),
    store: CrewLocationStore = Depends(get_crew_location_store),
):
    locations = crew.list_locations(
        store,
        crew_id=crew_id,
        active_only=active_only,
        within_radius=within_radius,
        center_lat=center_lat,
        center_lng=center_lng,
    )
    return {
        "locations": locations,
        "total_crews": len(locations),
        "active_crews": sum(1 for loc in locations if loc.get("status") == "active"),
        "recent_updates": sum(1 for loc in locations if loc["is_recent"]),
        "timestamp": _iso_now(),
    }


@router.post("/location")
def update_location(
    payload: CrewLocationUpdate,
    store: CrewLocationStore = Depends(get_crew_location_store),
):
    try:
        location = crew.update_location(store, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    timestamp = datetime.fromtimestamp(location["timestamp"] / 1000, tz=timezone.utc)
    return {
        "success": True,
        "crew_id": payload.crew_id,
        "location_updated": True,
        "timestamp": timestamp.isoformat(),
        "movement_detected": location["movement"] is not None,
        "recommendations": crew.recommendations(location),
    }


@router.put("/location")
def update_status(
    payload: CrewStatusUpdate,
    store: CrewLocationStore = Depends(get_crew_location_store),
):
    if not payload.crew_id:
        raise HTTPException(status_code=400, detail="Missing required field: crew_id")
    if crew.update_status(store, payload) is None:
        raise HTTPException(status_code=404, detail="Crew location not found")
    return {
        "success": True,
        "crew_id": payload.crew_id,
        "status_updated": True,
        "timestamp": _iso_now(),
    }


@router.delete("/location")
def remove_crew(
    crew_id: Optional[str] = Query(None),
    store: CrewLocationStore = Depends(get_crew_location_store),
):
    if not crew_id:
        raise HTTPException(status_code=400, detail="Missing required parameter: crew_id")
    return {
        "success": True,
        "crew_id": crew_id,
        "was_tracking": crew.remove_crew(store, crew_id),
        "timestamp": _iso_now(),
    }
