"""Per-frame activity pipeline.

One call to `ActivityPipeline.process()` is one detection tick: run the
detector, pick the subject, measure its movement, resolve the activity
(manual override or classifier) and publish the results on typed channels.
The pipeline performs no I/O itself; subscribers forward events to the
broadcast hub, update API state, or collect results for the CLI.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from typing import Any, Generic, Protocol, TypeVar

import numpy as np

from pawtrack.core.analytics.classifier import classify_activity
from pawtrack.core.override import ManualOverride
from pawtrack.core.trackers.frame_tracker import FrameTracker
from pawtrack.core.types import Activity, ActivityEvent, Detection, DetectionUpdate
from pawtrack.core.zones import ZoneRegistry

logger = logging.getLogger(__name__)

SUBJECT_CLASSES = ("dog", "cat", "bird", "person")

T = TypeVar("T")


class ObjectDetector(Protocol):
    """Minimal detector interface expected by `ActivityPipeline`."""

    def detect(self, frame: np.ndarray, **kwargs: Any) -> list[Detection]:
        """Return labeled detections in full-frame coordinates."""


class Channel(Generic[T]):
    """Synchronous publish/subscribe channel.

    A failing subscriber is logged and skipped so one consumer cannot stall
    the detection loop.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register `callback`; the returned function unsubscribes it."""

        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, item: T) -> None:
        for callback in list(self._subscribers):
            try:
                callback(item)
            except Exception:
                logger.exception("Subscriber of %s channel failed", self.name)


def select_subject(predictions: list[Detection]) -> Detection | None:
    """Return the first prediction whose class is a trackable subject.

    Model output order decides; with several pets in view only the first one
    is tracked.
    """

    for prediction in predictions:
        if prediction.class_name in SUBJECT_CLASSES:
            return prediction
    return None


class ActivityPipeline:
    """End-to-end per-frame activity processing for one detection session."""

    def __init__(
        self,
        detector: ObjectDetector | None,
        *,
        source_id: str,
        subject_name: str,
        zones: ZoneRegistry | None = None,
        override: ManualOverride | None = None,
        history_capacity: int = 1000,
        merge: str = "order",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.detector = detector
        self.source_id = source_id
        self.subject_name = subject_name
        self.zones = zones or ZoneRegistry()
        self.override = override or ManualOverride()
        self.merge = merge
        self._clock = clock
        self.tracker = FrameTracker(now_ms=clock() * 1000.0)
        self.history: deque[ActivityEvent] = deque(maxlen=history_capacity)

        self.updates: Channel[DetectionUpdate] = Channel("updates")
        self.fps: Channel[int] = Channel("fps")
        self.events: Channel[ActivityEvent] = Channel("events")

    def _detect(self, detector: ObjectDetector, frame: np.ndarray) -> list[Detection]:
        try:
            return list(detector.detect(frame))
        except Exception:
            logger.exception("Detection failed; treating frame as empty")
            return []

    def process(self, frame: np.ndarray | None) -> DetectionUpdate | None:
        """Run one detection tick.

        Returns `None` without touching any state when the detector or the
        frame is not available yet.
        """

        if self.detector is None or frame is None:
            return None

        h, w = frame.shape[:2]
        now = self._clock()
        predictions = self._detect(self.detector, frame)
        subject = select_subject(predictions)

        update = DetectionUpdate(
            subject_detected=False,
            activity=None,
            confidence=0.0,
            movement=0.0,
            predictions=predictions,
            frame_size=(int(w), int(h)),
            timestamp=now,
        )

        if subject is not None:
            position = subject.centroid
            movement = self.tracker.update(position)
            activity, confidence = self._resolve(subject, predictions, movement)
            update = DetectionUpdate(
                subject_detected=True,
                activity=activity,
                confidence=confidence,
                movement=round(movement, 1),
                predictions=predictions,
                position=position,
                subject=subject,
                frame_size=(int(w), int(h)),
                timestamp=now,
            )

        fps = self.tracker.fps.tick(now * 1000.0)
        if fps is not None:
            self.fps.publish(fps)

        self.updates.publish(update)

        if update.subject_detected and update.activity is not None:
            event = ActivityEvent(
                source_id=self.source_id,
                subject_name=self.subject_name,
                activity=update.activity,
                confidence=update.confidence,
                movement=update.movement,
                timestamp=int(now * 1000),
                position=update.position,
            )
            self.history.append(event)
            self.events.publish(event)

        return update

    def _resolve(
        self, subject: Detection, predictions: list[Detection], movement: float
    ) -> tuple[Activity, float]:
        manual = self.override.active_label()
        if manual is not None:
            if self.tracker.transition(f"MANUAL:{manual.value}"):
                logger.info("Manual mode: %s", manual.value)
            return manual, 1.0

        result = classify_activity(
            subject, predictions, movement, self.zones.snapshot(), merge=self.merge
        )
        if self.tracker.transition(f"AUTO:{result.activity.value}"):
            logger.info(
                "Detected activity: %s (%d%%)",
                result.activity.value,
                round(result.confidence * 100),
            )
        return result.activity, result.confidence
