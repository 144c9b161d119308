"""Liveness endpoint."""

from fastapi import APIRouter

from pawtrack.api.services.state import get_broadcaster

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str | bool]:
    """Report liveness and whether the activity broadcaster is consuming."""

    return {"status": "ok", "broadcaster": get_broadcaster().running}
