"""Camera session endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from pawtrack.api.schemas.models import CameraStatusSchema, update_to_payload
from pawtrack.api.services import state
from pawtrack.api.services.engine import CameraSession

router = APIRouter(prefix="/camera", tags=["camera"])


def _status(session: CameraSession | None) -> CameraStatusSchema:
    if session is None:
        return CameraStatusSchema(running=False)
    latest = session.latest_update()
    return CameraStatusSchema(
        running=session.running,
        source_id=session.source_id,
        fps=session.fps(),
        error=session.last_error,
        latest=update_to_payload(latest) if latest is not None else None,
    )


@router.get("/status", response_model=CameraStatusSchema)
def camera_status() -> CameraStatusSchema:
    return _status(state.get_camera())


@router.post("/start", response_model=CameraStatusSchema)
def start_camera() -> CameraStatusSchema:
    """Start monitoring; fails with 503 when the camera cannot be opened."""

    session = state.start_camera()
    if not session.running:
        raise HTTPException(status_code=503, detail=session.last_error or "Camera unavailable")
    return _status(session)


@router.post("/stop", response_model=CameraStatusSchema)
def stop_camera() -> CameraStatusSchema:
    state.stop_camera()
    return _status(state.get_camera())
