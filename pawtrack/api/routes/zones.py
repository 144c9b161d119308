"""Zone placement endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from pawtrack.api.schemas.models import ZoneSchema
from pawtrack.api.services.state import get_zones
from pawtrack.core.zones import ZoneRegistry

router = APIRouter(prefix="/zones", tags=["zones"])


@router.get("", response_model=dict[str, ZoneSchema])
def list_zones(zones: ZoneRegistry = Depends(get_zones)) -> dict[str, ZoneSchema]:
    """Return the zones placed so far."""

    return {name: ZoneSchema(x=z.x, y=z.y) for name, z in zones.snapshot().items()}


@router.put("/{name}", response_model=ZoneSchema)
def set_zone(name: str, zone: ZoneSchema, zones: ZoneRegistry = Depends(get_zones)) -> ZoneSchema:
    """Place or move a zone (coordinates in image pixels)."""

    try:
        placed = zones.set(name, zone.x, zone.y)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None
    return ZoneSchema(x=placed.x, y=placed.y)
