"""Activity snapshot and statistics endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from pawtrack.api.schemas.models import (
    ActivityStatsSchema,
    SubjectStatsSchema,
    event_to_payload,
    snapshot_to_payload,
)
from pawtrack.api.services.broadcaster import Broadcaster
from pawtrack.api.services.state import get_broadcaster
from pawtrack.core.analytics.statistics import compute_statistics, dedupe_timeline

router = APIRouter(prefix="/activities", tags=["activities"])


@router.get("")
async def activities(broadcaster: Broadcaster = Depends(get_broadcaster)) -> dict[str, Any]:
    """Return the same `{current, history}` snapshot the WebSocket sends."""

    return snapshot_to_payload(broadcaster.hub.snapshot())


@router.get("/stats", response_model=ActivityStatsSchema)
async def activity_stats(
    limit: int = 50, broadcaster: Broadcaster = Depends(get_broadcaster)
) -> ActivityStatsSchema:
    """Per-subject statistics and the most recent activity transitions."""

    snapshot = broadcaster.hub.snapshot()
    stats = compute_statistics(snapshot.history, snapshot.current)
    timeline = list(reversed(dedupe_timeline(snapshot.history)))[: max(0, limit)]
    return ActivityStatsSchema(
        statistics={name: SubjectStatsSchema.from_stats(s) for name, s in stats.items()},
        timeline=[event_to_payload(e) for e in timeline],
    )
