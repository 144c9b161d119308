from __future__ import annotations

import time
from dataclasses import dataclass, field

from pawtrack.core.analytics.classifier import calculate_movement
from pawtrack.core.types import Centroid


def _now_ms() -> float:
    return time.time() * 1000.0


@dataclass
class FpsCounter:
    """Counts frames per wall-clock second."""

    frames: int = 0
    last_time_ms: float = field(default_factory=_now_ms)
    fps: int = 0

    def tick(self, now_ms: float) -> int | None:
        """Count one frame; return the frame count when a second has elapsed."""

        self.frames += 1
        if now_ms - self.last_time_ms < 1000.0:
            return None
        self.fps = self.frames
        self.frames = 0
        self.last_time_ms = now_ms
        return self.fps


class FrameTracker:
    """Session-scoped tracking state for the detection pipeline.

    Holds the last subject centroid, the FPS counter and the last logged
    activity key. One instance belongs to exactly one detection session.
    """

    def __init__(self, now_ms: float | None = None) -> None:
        self.last_centroid: Centroid | None = None
        self.fps = FpsCounter(last_time_ms=_now_ms() if now_ms is None else now_ms)
        self.last_logged: str | None = None

    def update(self, centroid: Centroid) -> float:
        """Store the new centroid and return the displacement from the previous one."""

        movement = calculate_movement(centroid, self.last_centroid)
        self.last_centroid = centroid
        return movement

    def transition(self, key: str) -> bool:
        """Return True when `key` differs from the last logged key (and remember it)."""

        if key == self.last_logged:
            return False
        self.last_logged = key
        return True

    def reset(self, now_ms: float | None = None) -> None:
        self.last_centroid = None
        self.last_logged = None
        self.fps = FpsCounter(last_time_ms=_now_ms() if now_ms is None else now_ms)
