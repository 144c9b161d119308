"""Named points of interest (food/water/bed) consulted by the classifier."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Mapping

ZONE_NAMES = ("food", "water", "bed")

Zones = Mapping[str, "Zone"]


@dataclass(frozen=True)
class Zone:
    x: float
    y: float


def calculate_distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two pixel positions."""

    return math.hypot(x1 - x2, y1 - y2)


class ZoneRegistry:
    """Thread-safe registry of the zones placed for one detection session.

    Zones are only ever overwritten, never removed.
    """

    def __init__(self, initial: Mapping[str, tuple[float, float] | None] | None = None) -> None:
        self._lock = threading.Lock()
        self._zones: dict[str, Zone] = {}
        for name, point in (initial or {}).items():
            if point is not None:
                self.set(name, point[0], point[1])

    def set(self, name: str, x: float, y: float) -> Zone:
        """Place (or move) the zone called `name`."""

        if name not in ZONE_NAMES:
            raise ValueError(f"zone name must be one of: {', '.join(ZONE_NAMES)}")
        zone = Zone(float(x), float(y))
        with self._lock:
            self._zones[name] = zone
        return zone

    def get(self, name: str) -> Zone | None:
        with self._lock:
            return self._zones.get(name)

    def snapshot(self) -> dict[str, Zone]:
        """Return a copy that is safe to read while the registry is being updated."""

        with self._lock:
            return dict(self._zones)
