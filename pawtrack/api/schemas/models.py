"""Pydantic models for the HTTP/WS API."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pawtrack.core.analytics.statistics import SubjectStats
from pawtrack.core.broadcast.hub import ActivitySnapshot
from pawtrack.core.types import Activity, ActivityEvent, Centroid, DetectionUpdate


class PositionSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    center_x: float = Field(alias="centerX")
    center_y: float = Field(alias="centerY")


class ActivityEventSchema(BaseModel):
    """`pet-activity` payload sent by detection clients."""

    model_config = ConfigDict(populate_by_name=True)

    pet_name: str = Field(alias="petName", min_length=1)
    activity: Activity
    confidence: float = Field(ge=0.0, le=1.0)
    movement: float = Field(ge=0.0)
    timestamp: int
    position: PositionSchema | None = None

    def to_event(self, source_id: str) -> ActivityEvent:
        position = (
            Centroid(self.position.center_x, self.position.center_y)
            if self.position is not None
            else None
        )
        return ActivityEvent(
            source_id=source_id,
            subject_name=self.pet_name,
            activity=self.activity,
            confidence=self.confidence,
            movement=self.movement,
            timestamp=self.timestamp,
            position=position,
        )


def event_to_payload(event: ActivityEvent) -> dict[str, Any]:
    """Wire representation of an activity event (`id` is the source id)."""

    position = None
    if event.position is not None:
        position = {"centerX": event.position.center_x, "centerY": event.position.center_y}
    return {
        "id": event.source_id,
        "petName": event.subject_name,
        "activity": event.activity.value,
        "confidence": event.confidence,
        "movement": event.movement,
        "timestamp": event.timestamp,
        "position": position,
    }


def snapshot_to_payload(snapshot: ActivitySnapshot) -> dict[str, Any]:
    return {
        "current": [event_to_payload(e) for e in snapshot.current],
        "history": [event_to_payload(e) for e in snapshot.history],
    }


def update_to_payload(update: DetectionUpdate) -> dict[str, Any]:
    payload = asdict(update)
    payload["activity"] = update.activity.value if update.activity is not None else None
    return payload


class ZoneSchema(BaseModel):
    x: float
    y: float


class OverrideSchema(BaseModel):
    enabled: bool
    activity: Activity | None = None

    @field_validator("activity")
    @classmethod
    def _validate_activity(cls, v: Activity | None) -> Activity | None:
        if v is Activity.UNKNOWN:
            raise ValueError("Unknown cannot be used as a manual activity")
        return v


class CameraStatusSchema(BaseModel):
    running: bool
    source_id: str | None = None
    fps: int = 0
    error: str | None = None
    latest: dict[str, Any] | None = None


class SubjectStatsSchema(BaseModel):
    total: int
    activities: dict[str, int]
    avg_confidence: float
    avg_movement: float
    last_update: str | None = None

    @classmethod
    def from_stats(cls, stats: SubjectStats) -> "SubjectStatsSchema":
        return cls(**asdict(stats))


class ActivityStatsSchema(BaseModel):
    statistics: dict[str, SubjectStatsSchema]
    timeline: list[dict[str, Any]]


class ConfigSchema(BaseModel):
    """Runtime configuration payload."""

    video_source: str
    video_path: str | None = None
    rtsp_url: str | None = None
    camera_index: int = Field(default=0, ge=0)
    model_name: str
    model_task: str | None = None
    confidence: float = Field(gt=0.0, le=1.0)
    pet_name: str = Field(min_length=1)
    target_fps: float | None = Field(default=None, ge=0)
    max_tick_ms: float | None = Field(default=None, ge=0)
    history_capacity: int = Field(default=1000, gt=0)
    snapshot_history: int = Field(default=100, ge=0)
    local_history_capacity: int = Field(default=1000, gt=0)
    food_zone: tuple[float, float] | None = None
    water_zone: tuple[float, float] | None = None
    bed_zone: tuple[float, float] | None = None
    override_merge: str = "order"

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file", "rtsp"}:
            raise ValueError("video_source must be webcam|file|rtsp")
        return v

    @field_validator("override_merge")
    @classmethod
    def _validate_override_merge(cls, v: str) -> str:
        if v not in {"order", "confidence"}:
            raise ValueError("override_merge must be order|confidence")
        return v
