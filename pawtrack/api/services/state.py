"""In-process state for settings, zones, manual override, the broadcaster and
the camera session.

FastAPI routes use this module to reach the singletons.
"""

from __future__ import annotations

from threading import RLock

from pawtrack.api.services.broadcaster import Broadcaster, IngestActivity, SourceDisconnected
from pawtrack.api.services.engine import CameraSession
from pawtrack.core.broadcast.hub import ActivityHub
from pawtrack.core.config.settings import PawSettings, load_settings, settings_to_dict, zones_from_settings
from pawtrack.core.override import ManualOverride
from pawtrack.core.types import ActivityEvent
from pawtrack.core.zones import ZoneRegistry

_settings: PawSettings | None = None
_zones: ZoneRegistry | None = None
_override: ManualOverride | None = None
_broadcaster: Broadcaster | None = None
_camera: CameraSession | None = None
_lock = RLock()


def get_settings() -> PawSettings:
    """Return cached settings, loading them on first use."""

    global _settings
    with _lock:
        if _settings is None:
            _settings = load_settings()
    return _settings


def get_zones() -> ZoneRegistry:
    global _zones
    with _lock:
        if _zones is None:
            _zones = ZoneRegistry(zones_from_settings(get_settings()))
    return _zones


def get_override() -> ManualOverride:
    global _override
    with _lock:
        if _override is None:
            _override = ManualOverride()
    return _override


def get_broadcaster() -> Broadcaster:
    global _broadcaster
    with _lock:
        if _broadcaster is None:
            settings = get_settings()
            _broadcaster = Broadcaster(
                ActivityHub(settings.history_capacity, settings.snapshot_history)
            )
    return _broadcaster


def _forward_event(event: ActivityEvent) -> None:
    get_broadcaster().submit_threadsafe(IngestActivity(event.source_id, event))


def _forward_stop(source_id: str) -> None:
    get_broadcaster().submit_threadsafe(SourceDisconnected(source_id))


def get_camera() -> CameraSession | None:
    with _lock:
        return _camera


def start_camera() -> CameraSession:
    """Start a camera session (or return the running one).

    The returned session has `running == False` and `last_error` set when the
    source could not be opened.
    """

    global _camera
    with _lock:
        if _camera is not None and _camera.running:
            return _camera
        _camera = CameraSession(
            get_settings(),
            zones=get_zones(),
            override=get_override(),
            on_event=_forward_event,
            on_stop=_forward_stop,
        )
        _camera.start()
        return _camera


def stop_camera() -> None:
    """Stop the camera session (if present)."""

    with _lock:
        if _camera is not None:
            _camera.stop()


def _apply_runtime_settings(previous: PawSettings | None, settings: PawSettings) -> None:
    """Push reloaded values into singletons that were built from older settings.

    Zone seeds only overwrite a zone when the seed itself changed, so zones
    placed through the API survive an unrelated config update.
    """

    if _zones is not None:
        old_seeds = zones_from_settings(previous) if previous is not None else {}
        for name, point in zones_from_settings(settings).items():
            if point is not None and point != old_seeds.get(name):
                _zones.set(name, point[0], point[1])
    if _broadcaster is not None:
        _broadcaster.resize_history(settings.history_capacity, settings.snapshot_history)


def reload_settings(data: dict | None = None) -> PawSettings:
    """Reload settings and restart the camera session if it is running.

    Args:
        data: Optional patch dict merged into the loaded settings.
    """

    global _settings
    with _lock:
        previous = _settings
        base = load_settings()
        if data:
            _settings = PawSettings(**{**settings_to_dict(base), **data})
        else:
            _settings = base
        _apply_runtime_settings(previous, _settings)
        if _camera is not None and _camera.running:
            stop_camera()
            start_camera()
    return _settings
