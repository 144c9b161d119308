"""Video source abstractions.

The camera session consumes frames through a small interface (`VideoSource`)
so the capture implementation (webcam/file/RTSP) can be swapped without
affecting the activity pipeline.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import cv2

from pawtrack.core.config.settings import PawSettings
from pawtrack.core.types import Frame

logger = logging.getLogger(__name__)


class VideoSource(ABC):
    """Base interface for anything that can produce video frames."""

    @abstractmethod
    def read(self) -> Frame | None:
        """Return the next frame, or `None` when unavailable."""

        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release any underlying resources."""

        raise NotImplementedError


class OpenCVSource(VideoSource):
    """A `VideoSource` backed by `cv2.VideoCapture`."""

    def __init__(self, source: str | int) -> None:
        self.cap = cv2.VideoCapture(source)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {source}")

    def read(self) -> Frame | None:
        ok, frame = self.cap.read()
        if not ok:
            return None
        return frame

    def close(self) -> None:
        self.cap.release()


class WebcamSource(OpenCVSource):
    """Webcam capture that keeps only the newest frame.

    A reader thread drains the driver buffer continuously so a slow
    detection tick never works on a stale frame.
    """

    def __init__(self, index: int = 0) -> None:
        self.cap = None
        for backend in (cv2.CAP_ANY, getattr(cv2, "CAP_V4L2", None), getattr(cv2, "CAP_DSHOW", None)):
            if backend is None:
                continue
            try:
                cap = cv2.VideoCapture(index, backend)
                if cap.isOpened():
                    ret, _ = cap.read()
                    if ret:
                        self.cap = cap
                        logger.info("Opened camera index=%s backend=%s", index, backend)
                        break
                    cap.release()
            except Exception:
                continue

        if self.cap is None or not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera {index}. Check camera permissions.")

        try:
            self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except Exception:
            pass
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, 1280)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 720)

        self._lock = threading.Lock()
        self._running = True
        self._latest_frame: Frame | None = None
        self._latest_seq = 0
        self._delivered_seq = 0
        self._reader_thread = threading.Thread(target=self._reader_loop, daemon=True)
        self._reader_thread.start()

    def _reader_loop(self) -> None:
        while self._running and self.cap is not None:
            ok, frame = self.cap.read()
            if ok:
                with self._lock:
                    self._latest_frame = frame
                    self._latest_seq += 1
            else:
                time.sleep(0.01)

    def read(self) -> Frame | None:
        """Return the newest frame, or `None` if nothing new arrived since the last read."""

        with self._lock:
            frame = self._latest_frame
            seq = self._latest_seq
        if frame is None or seq == self._delivered_seq:
            return None
        self._delivered_seq = seq
        return frame

    def close(self) -> None:
        self._running = False
        try:
            if self._reader_thread.is_alive():
                self._reader_thread.join(timeout=1)
        finally:
            if self.cap is not None:
                self.cap.release()


class FileSource(OpenCVSource):
    """Video file played back in real time, rewinding at EOF."""

    def __init__(self, path: str) -> None:
        super().__init__(path)
        self._start_perf: float | None = None
        self._frame_index = 0
        fps = float(self.cap.get(cv2.CAP_PROP_FPS) or 0.0)
        self._source_fps = fps if fps > 0.0 else None

    def _pace(self) -> None:
        if self._source_fps is None or self._start_perf is None:
            return
        delay = self._frame_index / self._source_fps - (time.perf_counter() - self._start_perf)
        if delay > 0:
            time.sleep(delay)

    def read(self) -> Frame | None:
        if self._start_perf is None:
            self._start_perf = time.perf_counter()
            self._frame_index = 0

        ok, frame = self.cap.read()
        if not ok:
            if not self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0):
                return None
            self._start_perf = time.perf_counter()
            self._frame_index = 0
            ok, frame = self.cap.read()
            if not ok:
                return None
        self._frame_index += 1
        self._pace()
        return frame


class RTSPSource(OpenCVSource):
    """RTSP stream source (FFmpeg backend preferred)."""

    def __init__(self, url: str) -> None:
        self.cap = None
        for backend in (getattr(cv2, "CAP_FFMPEG", None), None):
            cap = cv2.VideoCapture(url) if backend is None else cv2.VideoCapture(url, backend)
            if cap.isOpened():
                self.cap = cap
                break
            cap.release()
        if self.cap is None:
            raise RuntimeError(f"Failed to open RTSP source: {url}")
        try:
            self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except Exception:
            pass


def make_source(settings: PawSettings) -> VideoSource:
    """Instantiate the configured `VideoSource`."""

    if settings.video_source == "file":
        if not settings.video_path:
            raise RuntimeError("video_path is required for file sources")
        video_path = Path(settings.video_path)
        if not video_path.exists():
            raise RuntimeError(f"Video path not found: {video_path}")
        return FileSource(str(video_path))
    if settings.video_source == "rtsp":
        if not settings.rtsp_url:
            raise RuntimeError("rtsp_url is required for rtsp sources")
        return RTSPSource(settings.rtsp_url)
    return WebcamSource(settings.camera_index)


@contextmanager
def opened_source(source: VideoSource) -> Iterator[VideoSource]:
    """Yield `source` and release it on every exit path."""

    try:
        yield source
    finally:
        try:
            source.close()
        except Exception:
            logger.exception("Failed to release video source")
