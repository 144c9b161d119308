"""Activity hub state.

`ActivityHub` owns the latest event per detection source and the global
rolling history. It is not thread-safe on its own: the `Broadcaster` actor
is its single writer.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from pawtrack.core.types import ActivityEvent


@dataclass(frozen=True)
class ActivitySnapshot:
    """Latest event per connected source plus the most recent history."""

    current: list[ActivityEvent]
    history: list[ActivityEvent]


def _check_sizes(history_capacity: int, snapshot_history: int) -> None:
    if history_capacity <= 0:
        raise ValueError("history_capacity must be > 0")
    if snapshot_history < 0:
        raise ValueError("snapshot_history must be >= 0")


class ActivityHub:
    def __init__(self, history_capacity: int = 1000, snapshot_history: int = 100) -> None:
        _check_sizes(history_capacity, snapshot_history)
        self.source_states: dict[str, ActivityEvent] = {}
        self.history: deque[ActivityEvent] = deque(maxlen=history_capacity)
        self.snapshot_history = snapshot_history

    def resize(self, history_capacity: int, snapshot_history: int) -> None:
        """Change the history bounds, keeping the newest entries that still fit."""

        _check_sizes(history_capacity, snapshot_history)
        self.history = deque(self.history, maxlen=history_capacity)
        self.snapshot_history = snapshot_history

    def ingest(self, source_id: str, event: ActivityEvent) -> ActivitySnapshot:
        """Record `event` as the latest state of `source_id` and append it to history."""

        self.source_states[source_id] = event
        self.history.append(event)
        return self.snapshot()

    def remove_source(self, source_id: str) -> ActivitySnapshot:
        """Forget a disconnected source; its history entries are kept."""

        self.source_states.pop(source_id, None)
        return self.snapshot()

    def snapshot(self) -> ActivitySnapshot:
        n = self.snapshot_history
        recent = list(self.history)[-n:] if n else []
        return ActivitySnapshot(current=list(self.source_states.values()), history=recent)
