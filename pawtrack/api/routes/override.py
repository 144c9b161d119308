"""Manual activity override endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from pawtrack.api.schemas.models import OverrideSchema
from pawtrack.api.services.state import get_override
from pawtrack.core.override import ManualOverride, OverrideState

router = APIRouter(prefix="/override", tags=["override"])


def _to_schema(state: OverrideState) -> OverrideSchema:
    return OverrideSchema(enabled=state.enabled, activity=state.activity)


@router.get("", response_model=OverrideSchema)
def get_override_state(override: ManualOverride = Depends(get_override)) -> OverrideSchema:
    return _to_schema(override.state())


@router.post("", response_model=OverrideSchema)
def set_override(body: OverrideSchema, override: ManualOverride = Depends(get_override)) -> OverrideSchema:
    """Enable manual mode with a label, or return to automatic classification."""

    return _to_schema(override.set(body.enabled, body.activity))


@router.post("/key/{key}", response_model=OverrideSchema)
def press_key(key: str, override: ManualOverride = Depends(get_override)) -> OverrideSchema:
    """Keyboard shortcut: 1-6 pick a label, 0 or a return to automatic mode."""

    try:
        return _to_schema(override.apply_key(key))
    except KeyError:
        raise HTTPException(status_code=404, detail="Unbound key") from None
