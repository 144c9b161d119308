"""Configuration endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from pawtrack.api.schemas.models import ConfigSchema
from pawtrack.api.services.state import get_settings, reload_settings
from pawtrack.core.config.settings import settings_to_dict

router = APIRouter()


@router.get("/config", response_model=ConfigSchema)
def get_config() -> ConfigSchema:
    """Return the current effective backend configuration."""

    settings = get_settings()
    return ConfigSchema(**settings_to_dict(settings))


@router.post("/config", response_model=ConfigSchema)
def update_config(cfg: ConfigSchema) -> ConfigSchema:
    """Update in-memory settings and restart a running camera session.

    This endpoint updates runtime configuration only. Persist configuration via
    environment variables or the YAML config file.
    """

    settings = reload_settings(cfg.model_dump())
    return ConfigSchema(**settings_to_dict(settings))
