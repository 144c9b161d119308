from __future__ import annotations

import threading
import time

import numpy as np
import pytest

import pawtrack.api.services.engine as engine_mod
from pawtrack.core.config.settings import PawSettings
from pawtrack.core.override import ManualOverride
from pawtrack.core.types import Detection
from pawtrack.core.video_sources.base import VideoSource, make_source
from pawtrack.core.zones import ZoneRegistry


class FakeSource(VideoSource):
    def __init__(self):
        self.reads = 0
        self.closed = False

    def read(self):
        self.reads += 1
        return np.zeros((48, 64, 3), dtype=np.uint8)

    def close(self):
        self.closed = True


class FakeDetector:
    def __init__(self):
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        return [Detection(class_name="dog", score=0.9, bbox=(0.0, 0.0, 10.0, 10.0))]


def _wait_for(predicate, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def _session(settings, source, detector, **kwargs):
    return engine_mod.CameraSession(
        settings,
        zones=ZoneRegistry(),
        override=ManualOverride(),
        detector=detector,
        source_factory=lambda _s: source,
        **kwargs,
    )


def test_session_emits_events_and_releases_source():
    source, detector = FakeSource(), FakeDetector()
    events, stopped = [], []
    session = _session(
        PawSettings(target_fps=200, pet_name="Rex"),
        source,
        detector,
        on_event=events.append,
        on_stop=stopped.append,
    )

    assert session.start() is True
    assert _wait_for(lambda: len(events) >= 2)
    session.stop()

    assert session.running is False
    assert source.closed is True
    assert stopped == [session.source_id]
    assert events[0].source_id == session.source_id
    assert events[0].subject_name == "Rex"
    latest = session.latest_update()
    assert latest is not None and latest.subject_detected is True

    # No ticks after stop.
    calls = detector.calls
    time.sleep(0.05)
    assert detector.calls == calls


def test_source_failure_keeps_loop_stopped():
    def _boom(_settings):
        raise RuntimeError("permission denied")

    session = engine_mod.CameraSession(
        PawSettings(),
        zones=ZoneRegistry(),
        override=ManualOverride(),
        detector=FakeDetector(),
        source_factory=_boom,
    )
    assert session.start() is False
    assert session.running is False
    assert "permission denied" in session.last_error


def test_model_failure_releases_source(monkeypatch: pytest.MonkeyPatch):
    def _fail(*_a, **_k):
        raise RuntimeError("no weights")

    monkeypatch.setattr(engine_mod, "YoloObjectDetector", _fail)
    source = FakeSource()
    session = _session(PawSettings(), source, None)
    assert session.start() is False
    assert source.closed is True
    assert "no weights" in session.last_error


def test_overrunning_tick_skips_next_frame():
    source = FakeSource()

    class SlowDetector(FakeDetector):
        def detect(self, frame):
            time.sleep(0.002)
            return super().detect(frame)

    detector = SlowDetector()
    session = _session(PawSettings(target_fps=0, max_tick_ms=0.5), source, detector)
    session.start()
    assert _wait_for(lambda: source.reads >= 6)
    session.stop()
    assert detector.calls < source.reads


def test_stop_without_start_is_noop():
    stopped = []
    session = _session(PawSettings(), FakeSource(), FakeDetector(), on_stop=stopped.append)
    session.stop()
    assert stopped == []


def test_make_source_validation(tmp_path):
    with pytest.raises(RuntimeError):
        make_source(PawSettings(video_source="file", video_path=str(tmp_path / "missing.mp4")))
    with pytest.raises(RuntimeError):
        make_source(PawSettings(video_source="file"))
    with pytest.raises(RuntimeError):
        make_source(PawSettings(video_source="rtsp"))


def test_tick_outliving_stop_neither_publishes_nor_disconnects_early():
    source = FakeSource()
    entered, release = threading.Event(), threading.Event()

    class BlockingDetector(FakeDetector):
        def detect(self, frame):
            entered.set()
            release.wait(timeout=5)
            return super().detect(frame)

    order = []
    session = _session(
        PawSettings(target_fps=0),
        source,
        BlockingDetector(),
        on_event=lambda e: order.append("event"),
        on_stop=lambda sid: order.append("stop"),
    )
    assert session.start() is True
    assert entered.wait(timeout=2)

    session.stop(timeout=0.05)
    assert session.running is False
    # The worker is still inside detect(), so nothing is reported yet.
    assert order == []

    release.set()
    assert _wait_for(lambda: order == ["stop"])
    time.sleep(0.05)
    assert order == ["stop"]
    assert source.closed is True


def test_restart_refused_while_previous_tick_finishes():
    entered, release = threading.Event(), threading.Event()

    class BlockingDetector(FakeDetector):
        def detect(self, frame):
            entered.set()
            release.wait(timeout=5)
            return super().detect(frame)

    session = _session(PawSettings(target_fps=0), FakeSource(), BlockingDetector())
    session.start()
    assert entered.wait(timeout=2)
    session.stop(timeout=0.05)

    assert session.start() is False
    assert "shutting down" in session.last_error
    release.set()
    assert _wait_for(lambda: not session._thread.is_alive())


def test_source_read_error_stops_session_and_reports():
    class BrokenSource(FakeSource):
        def read(self):
            raise RuntimeError("device unplugged")

    source = BrokenSource()
    stopped = []
    session = _session(PawSettings(), source, FakeDetector(), on_stop=stopped.append)
    assert session.start() is True

    assert _wait_for(lambda: stopped == [session.source_id])
    assert session.running is False
    assert "device unplugged" in session.last_error
    assert source.closed is True

    # A later stop() does not report the source twice.
    session.stop()
    assert stopped == [session.source_id]
