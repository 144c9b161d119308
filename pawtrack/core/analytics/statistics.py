"""Dashboard-side aggregation of broadcast activity updates.

Computes per-subject descriptive statistics over the rolling history and a
de-duplicated timeline that only keeps activity transitions.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class SubjectStats:
    total: int = 0
    activities: dict[str, int] = field(default_factory=dict)
    avg_confidence: float = 0.0
    avg_movement: float = 0.0
    last_update: str | None = None


def _field(entry: Any, name: str, wire_name: str) -> Any:
    # Accepts core ActivityEvent objects as well as wire dicts (camelCase keys).
    if isinstance(entry, Mapping):
        return entry.get(wire_name, entry.get(name))
    return getattr(entry, name, None)


def _activity(entry: Any) -> str | None:
    value = _field(entry, "activity", "activity")
    return getattr(value, "value", value)


def _subject(entry: Any) -> str | None:
    return _field(entry, "subject_name", "petName")


def format_time(timestamp_ms: float) -> str:
    """Human-readable local time of an epoch-ms timestamp."""

    return datetime.fromtimestamp(timestamp_ms / 1000.0).strftime("%H:%M:%S")


def compute_statistics(history: list[Any], current_subjects: Iterable[Any]) -> dict[str, SubjectStats]:
    """Return statistics keyed by subject name.

    Args:
        history: Activity events in arrival order (core events or wire dicts).
        current_subjects: Latest event per connected source; only these
            subjects get a record.

    Returns:
        An empty mapping when there is no history at all; otherwise one
        record per current subject (zeroed when it has no history).
    """

    if not history:
        return {}

    stats: dict[str, SubjectStats] = {}
    for subject in current_subjects:
        name = _subject(subject)
        if name is None:
            continue
        entries = [h for h in history if _subject(h) == name]
        if not entries:
            stats[name] = SubjectStats()
            continue

        counts: dict[str, int] = {}
        total_confidence = 0.0
        total_movement = 0.0
        for entry in entries:
            label = _activity(entry)
            counts[label] = counts.get(label, 0) + 1
            total_confidence += float(_field(entry, "confidence", "confidence") or 0.0)
            total_movement += float(_field(entry, "movement", "movement") or 0.0)

        n = len(entries)
        stats[name] = SubjectStats(
            total=n,
            activities=counts,
            avg_confidence=round(total_confidence / n * 100.0, 1),
            avg_movement=round(total_movement / n, 1),
            last_update=format_time(float(_field(entries[-1], "timestamp", "timestamp") or 0)),
        )
    return stats


def dedupe_timeline(history: list[Any]) -> list[Any]:
    """Collapse consecutive entries sharing activity and subject.

    Only the first entry of each run is kept.
    """

    out: list[Any] = []
    prev: tuple[str | None, str | None] | None = None
    for entry in history:
        key = (_activity(entry), _subject(entry))
        if key != prev:
            out.append(entry)
            prev = key
    return out


def format_duration(ms: float) -> str:
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


class DashboardAggregator:
    """Consumes `pet-activities-update` payloads for a dashboard view."""

    def __init__(self) -> None:
        self.current: list[dict[str, Any]] = []
        self.history: list[dict[str, Any]] = []

    def apply(self, update: Mapping[str, Any]) -> None:
        self.current = list(update.get("current") or [])
        self.history = list(update.get("history") or [])

    def statistics(self) -> dict[str, SubjectStats]:
        return compute_statistics(self.history, self.current)

    def timeline(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Transitions only, most recent first."""

        items = list(reversed(dedupe_timeline(self.history)))
        return items[:limit] if limit is not None else items
