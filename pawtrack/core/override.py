"""Operator-supplied activity labels that bypass the classifier."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from pawtrack.core.types import Activity

logger = logging.getLogger(__name__)

KEY_BINDINGS: dict[str, Activity] = {
    "1": Activity.WALKING,
    "2": Activity.RUNNING_PLAYING,
    "3": Activity.RESTING,
    "4": Activity.EATING,
    "5": Activity.DRINKING,
    "6": Activity.STANDING_SITTING,
}
AUTO_KEYS = {"0", "a"}


@dataclass(frozen=True)
class OverrideState:
    enabled: bool
    activity: Activity | None


class ManualOverride:
    """Thread-safe manual override channel shared by the API and the camera loop."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._enabled = False
        self._activity: Activity | None = None

    def set(self, enabled: bool, activity: Activity | None = None) -> OverrideState:
        with self._lock:
            self._enabled = bool(enabled)
            self._activity = activity if enabled else None
            return OverrideState(self._enabled, self._activity)

    def state(self) -> OverrideState:
        with self._lock:
            return OverrideState(self._enabled, self._activity)

    def active_label(self) -> Activity | None:
        """Return the override label when manual mode is on and a label is set."""

        with self._lock:
            if self._enabled and self._activity is not None:
                return self._activity
            return None

    def apply_key(self, key: str) -> OverrideState:
        """Apply a keyboard binding (1-6 pick a label, 0 or a return to auto mode).

        Raises:
            KeyError: When the key has no binding.
        """

        key = key.lower()
        if key in KEY_BINDINGS:
            state = self.set(True, KEY_BINDINGS[key])
            logger.info("Manual activity set: %s", state.activity.value)
            return state
        if key in AUTO_KEYS:
            logger.info("Returned to auto detection mode")
            return self.set(False)
        raise KeyError(key)
