from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable

from pawtrack.core.analytics.pipeline import ActivityPipeline, ObjectDetector
from pawtrack.core.config.settings import PawSettings
from pawtrack.core.detectors.yolo import YoloObjectDetector
from pawtrack.core.override import ManualOverride
from pawtrack.core.types import ActivityEvent, DetectionUpdate
from pawtrack.core.video_sources.base import VideoSource, make_source, opened_source
from pawtrack.core.zones import ZoneRegistry

logger = logging.getLogger(__name__)


class CameraSession:
    """Runs the capture → detect → classify loop for one camera.

    Ticks run back to back on a worker thread. A slow inference pass only
    delays the next tick; with `max_tick_ms` set, an overrunning tick makes
    the loop drop the next captured frame instead of processing it.
    """

    def __init__(
        self,
        settings: PawSettings,
        *,
        zones: ZoneRegistry,
        override: ManualOverride,
        on_event: Callable[[ActivityEvent], None] | None = None,
        on_stop: Callable[[str], None] | None = None,
        detector: ObjectDetector | None = None,
        source_factory: Callable[[PawSettings], VideoSource] = make_source,
    ) -> None:
        self.settings = settings
        self.source_id = f"camera-{uuid.uuid4().hex[:8]}"
        self._detector = detector
        self._source_factory = source_factory
        self._on_event = on_event
        self._on_stop = on_stop
        self.zones = zones
        self.override = override
        self.pipeline: ActivityPipeline | None = None

        if settings.target_fps is not None:
            self._target_fps = float(settings.target_fps)
        elif settings.video_source == "file":
            # FileSource paces playback itself.
            self._target_fps = 0.0
        else:
            self._target_fps = 15.0

        self.running = False
        self.last_error: str | None = None
        self._thread: threading.Thread | None = None
        self._halt = threading.Event()
        self._source: VideoSource | None = None
        self._lock = threading.Lock()
        self._latest_update: DetectionUpdate | None = None
        self._fps = 0
        self._skip_next = False

    def _build_pipeline(self, halt: threading.Event) -> ActivityPipeline:
        detector = self._detector or YoloObjectDetector(
            self.settings.model_name,
            self.settings.confidence,
            task=self.settings.model_task,
        )
        pipeline = ActivityPipeline(
            detector,
            source_id=self.source_id,
            subject_name=self.settings.pet_name,
            zones=self.zones,
            override=self.override,
            history_capacity=self.settings.local_history_capacity,
            merge=self.settings.override_merge,
        )
        pipeline.updates.subscribe(self._store_update)
        pipeline.fps.subscribe(self._store_fps)
        if self._on_event is not None:
            on_event = self._on_event

            def _forward(event: ActivityEvent) -> None:
                # Events from a tick that finishes after stop() are not forwarded.
                if not halt.is_set():
                    on_event(event)

            pipeline.events.subscribe(_forward)
        return pipeline

    def start(self) -> bool:
        """Acquire the source and start the worker thread.

        Returns False (with `last_error` set) when the source or the model
        cannot be opened; the loop is not started in that case.
        """

        if self.running:
            return True
        if self._thread is not None and self._thread.is_alive():
            self.last_error = "Previous capture loop is still shutting down"
            return False
        try:
            source = self._source_factory(self.settings)
        except Exception as exc:
            self.last_error = f"Failed to open video source: {exc}"
            logger.exception(self.last_error)
            return False
        halt = threading.Event()
        try:
            pipeline = self._build_pipeline(halt)
        except Exception as exc:
            self.last_error = f"Failed to load detection model: {exc}"
            logger.exception(self.last_error)
            source.close()
            return False

        self._source = source
        self.pipeline = pipeline
        self._halt = halt
        self._skip_next = False
        self.last_error = None
        self.running = True
        self._thread = threading.Thread(target=self._loop, args=(source, pipeline, halt), daemon=True)
        self._thread.start()
        logger.info("Camera session %s started", self.source_id)
        return True

    def stop(self, timeout: float = 2.0) -> None:
        """Halt future ticks and wait for the worker to release the source.

        `on_stop` fires from the worker once the source is closed, so a tick
        still running when the join times out cannot publish after it.
        """

        self.running = False
        self._halt.set()
        thread = self._thread
        if thread is None:
            return
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("Camera session %s is still finishing a tick", self.source_id)
            return
        self._thread = None
        self._source = None

    def _loop(self, source: VideoSource, pipeline: ActivityPipeline, halt: threading.Event) -> None:
        try:
            with opened_source(source):
                while not halt.is_set():
                    frame = source.read()
                    if frame is None:
                        time.sleep(0.01)
                        continue
                    if self._skip_next:
                        self._skip_next = False
                        continue

                    start = time.perf_counter()
                    pipeline.process(frame)
                    duration = time.perf_counter() - start

                    budget = self.settings.max_tick_ms
                    if budget and duration * 1000.0 > budget:
                        self._skip_next = True

                    if self._target_fps > 0:
                        delay = (1.0 / self._target_fps) - duration
                        if delay > 0:
                            time.sleep(delay)
        except Exception as exc:
            self.last_error = f"Camera loop failed: {exc}"
            logger.exception("Camera session %s crashed", self.source_id)
        finally:
            halt.set()
            if self._halt is halt:
                self.running = False
            logger.info("Camera session %s stopped", self.source_id)
            if self._on_stop is not None:
                self._on_stop(self.source_id)

    def _store_update(self, update: DetectionUpdate) -> None:
        with self._lock:
            self._latest_update = update

    def _store_fps(self, fps: int) -> None:
        with self._lock:
            self._fps = fps

    def latest_update(self) -> DetectionUpdate | None:
        with self._lock:
            return self._latest_update

    def fps(self) -> int:
        with self._lock:
            return self._fps
