"""Backend configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `PAW_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pawtrack.core.analytics.classifier import MERGE_MODES
from pawtrack.core.zones import ZONE_NAMES


class PawSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `PAW_` env overrides."""

    video_source: str = Field("webcam", description="webcam|file|rtsp")
    video_path: str | None = None
    rtsp_url: str | None = None
    camera_index: int = 0
    # COCO weights: dog/cat/bird/person plus bowl/cup/bottle are all COCO classes.
    model_name: str = Field("yolo11n.pt")
    model_task: str | None = Field(default="detect", description="auto|detect")
    confidence: float = 0.5

    pet_name: str = "My Dog"

    # Optional cap for the detection loop. 0 runs as fast as frames arrive.
    target_fps: float | None = None
    # A tick slower than this budget makes the loop skip the next frame.
    max_tick_ms: float | None = None

    history_capacity: int = 1000
    snapshot_history: int = 100
    local_history_capacity: int = 1000

    # Zones seeded at startup as [x, y] pixel positions.
    food_zone: tuple[float, float] | None = None
    water_zone: tuple[float, float] | None = None
    bed_zone: tuple[float, float] | None = None

    # "order": a nearby bowl/cup/bottle overwrites any earlier label.
    # "confidence": it only replaces labels with lower confidence.
    override_merge: str = "order"

    model_config = SettingsConfigDict(env_prefix="PAW_", validate_assignment=True)

    @field_validator("confidence")
    @classmethod
    def _validate_confidence(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("confidence must be in (0, 1]")
        return v

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file", "rtsp"}:
            raise ValueError("video_source must be webcam|file|rtsp")
        return v

    @field_validator("model_task")
    @classmethod
    def _validate_model_task(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v2 = str(v).strip().lower()
        if v2 in {"", "auto", "none"}:
            return None
        if v2 != "detect":
            raise ValueError("model_task must be auto|detect")
        return v2

    @field_validator("pet_name")
    @classmethod
    def _validate_pet_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("pet_name must not be empty")
        return v

    @field_validator("target_fps", "max_tick_ms")
    @classmethod
    def _validate_non_negative(cls, v: float | None) -> float | None:
        if v is None:
            return v
        if v < 0:
            raise ValueError("value must be >= 0")
        return float(v)

    @field_validator("history_capacity", "local_history_capacity")
    @classmethod
    def _validate_capacity(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("capacity must be > 0")
        return v

    @field_validator("snapshot_history")
    @classmethod
    def _validate_snapshot_history(cls, v: int) -> int:
        if v < 0:
            raise ValueError("snapshot_history must be >= 0")
        return v

    @field_validator("override_merge")
    @classmethod
    def _validate_override_merge(cls, v: str) -> str:
        if v not in MERGE_MODES:
            raise ValueError("override_merge must be order|confidence")
        return v


def settings_to_dict(settings: PawSettings) -> dict[str, Any]:
    return cast(dict[str, Any], settings.model_dump())


def zones_from_settings(settings: PawSettings) -> dict[str, tuple[float, float] | None]:
    """Return the seed zones keyed by zone name."""

    return {name: getattr(settings, f"{name}_zone") for name in ZONE_NAMES}


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/pawtrack.config.yml)."""

    return Path(os.getenv("PAW_CONFIG", "config/pawtrack.config.yml"))


def load_settings() -> PawSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = PawSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }

    merged = {**data, **env_overrides}
    return PawSettings(**merged)
