"""Shared type definitions used across the backend.

Small, stable types (boxes, centroids, detections, activity events and
per-frame updates) live here so detector/classifier/pipeline code can stay
strongly typed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

Frame = np.ndarray

BBox = tuple[float, float, float, float]  # x1, y1, x2, y2


class Activity(str, Enum):
    """Closed set of activity labels (classifier output and manual override)."""

    SLEEPING = "Sleeping"
    SLEEPING_LYING = "Sleeping/Lying"
    RESTING = "Resting"
    EATING = "Eating"
    DRINKING = "Drinking"
    STANDING_SITTING = "Standing/Sitting"
    WALKING = "Walking"
    RUNNING_PLAYING = "Running/Playing"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class Centroid:
    """Midpoint of a subject bounding box."""

    center_x: float
    center_y: float


@dataclass
class Detection:
    """Raw detector output in pixel coordinates."""

    class_name: str
    score: float
    bbox: BBox

    @property
    def centroid(self) -> Centroid:
        x1, y1, x2, y2 = self.bbox
        return Centroid((x1 + x2) / 2.0, (y1 + y2) / 2.0)


@dataclass(frozen=True)
class Classification:
    activity: Activity
    confidence: float


@dataclass(frozen=True)
class ActivityEvent:
    """One classified observation of a subject, as forwarded to the hub."""

    source_id: str
    subject_name: str
    activity: Activity
    confidence: float
    movement: float
    timestamp: int  # epoch milliseconds
    position: Centroid | None = None


@dataclass
class DetectionUpdate:
    """Per-tick result published by the detection pipeline."""

    subject_detected: bool
    activity: Activity | None
    confidence: float
    movement: float
    predictions: list[Detection] = field(default_factory=list)
    position: Centroid | None = None
    subject: Detection | None = None
    frame_size: tuple[int, int] = (0, 0)
    timestamp: float = 0.0
