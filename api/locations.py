"""
Delivery location API endpoints.
Zone listing, free-text search, device position classification, ETAs and
per-client recent selections.
"""

from datetime import datetime
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from config.logging_config import get_logger
from config.settings import settings
from database.recent_selections import RecentSelectionsRepository, get_recent_selections
from delivery.zones import ZoneNotFoundError
from location.models import ResolvedLocation
from location.service import LocationService

# Configure logging
logger = get_logger(__name__)

# Create router
router = APIRouter()


class DevicePositionRequest(BaseModel):
    """Position obtained by the browser's geolocation flow."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(None, ge=0, description="Accuracy radius in metres")


class RecentSelectionRequest(BaseModel):
    zone: str = Field(..., min_length=1, max_length=100)


@lru_cache(maxsize=1)
def get_location_service() -> LocationService:
    """Shared service instance; overridden in tests."""
    return LocationService()


def get_recent_store(x_client_id: str = Header(..., min_length=1, max_length=128)) -> RecentSelectionsRepository:
    return get_recent_selections(x_client_id, settings.recent_selections_backend)


def get_optional_recent_store(
    x_client_id: Optional[str] = Header(None, max_length=128)
) -> Optional[RecentSelectionsRepository]:
    if not x_client_id:
        return None
    return get_recent_selections(x_client_id, settings.recent_selections_backend)


@router.get("/zones")
async def list_zones(service: LocationService = Depends(get_location_service)):
    """All delivery zones in registry order."""
    return {
        "version": service.registry.version,
        "zones": [zone.to_dict() for zone in service.registry.all()]
    }


@router.get("/zones/{zone_name}/eta")
async def zone_eta(zone_name: str, service: LocationService = Depends(get_location_service)):
    """
    Peak-adjusted ETA for a zone.

    Raises:
        HTTPException: 404 for an unknown zone
    """
    now = datetime.now()
    try:
        eta = service.adjusted_eta(zone_name, now)
    except ZoneNotFoundError:
        raise HTTPException(status_code=404, detail=f"Unknown delivery zone: {zone_name}")

    zone = service.registry.require(zone_name)
    return {
        "zone": zone.name,
        "estimated_time": eta,
        "base_estimated_time": zone.estimated_time,
        "peak_adjusted": eta != zone.estimated_time,
        "computed_at": now.isoformat()
    }


@router.get("/locations/search")
async def search_locations(
    q: str = Query(..., max_length=200, description="Free text typed by the customer"),
    service: LocationService = Depends(get_location_service)
):
    """
    Classified delivery suggestions for free text.

    Provider outages yield fewer (or no) suggestions, never an error.
    """
    results = await service.resolve_free_text(q)
    return {
        "query": q.strip(),
        "count": len(results),
        "results": [result.to_dict() for result in results]
    }


@router.post("/locations/device")
async def classify_device_position(
    position: DevicePositionRequest,
    service: LocationService = Depends(get_location_service),
    recent: Optional[RecentSelectionsRepository] = Depends(get_optional_recent_store)
):
    """Assign a zone to a device position, or report the nearest zone."""
    outcome = service.classify_position(position.latitude, position.longitude, position.accuracy)
    if isinstance(outcome, ResolvedLocation) and recent is not None:
        recent.append(outcome.zone.name)
    return outcome.to_dict()


@router.get("/recent-selections")
async def list_recent_selections(recent: RecentSelectionsRepository = Depends(get_recent_store)):
    return {"zones": recent.get()}


@router.post("/recent-selections")
async def add_recent_selection(
    request: RecentSelectionRequest,
    recent: RecentSelectionsRepository = Depends(get_recent_store),
    service: LocationService = Depends(get_location_service)
):
    """
    Remember a zone the customer picked.

    Raises:
        HTTPException: 404 for an unknown zone
    """
    if service.registry.by_name(request.zone) is None:
        raise HTTPException(status_code=404, detail=f"Unknown delivery zone: {request.zone}")
    return {"zones": recent.append(request.zone)}


@router.delete("/recent-selections")
async def clear_recent_selections(recent: RecentSelectionsRepository = Depends(get_recent_store)):
    recent.clear()
    return {"zones": []}
