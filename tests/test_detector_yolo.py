import sys

import numpy as np

import pawtrack.core.detectors.yolo as yolo_mod

COCO_NAMES = {0: "person", 14: "bird", 15: "cat", 16: "dog", 39: "bottle", 41: "cup", 45: "bowl", 56: "chair"}


class _FakeResult:
    def __init__(self, boxes=None, names=None):
        self.boxes = boxes
        self.names = names


class _FakeBoxes:
    def __init__(self, data):
        self.data = data

    def __len__(self):
        return int(self.data.shape[0])


class _FakeTensor:
    def __init__(self, arr):
        self._arr = arr
        self.cpu_called = False

    def cpu(self):
        self.cpu_called = True
        return self

    def numpy(self):
        return self._arr


class _FakeYOLO:
    def __init__(self, model_name, task=None):
        self.model_name = model_name
        self.task = task
        self.names = dict(COCO_NAMES)
        self.to_calls = []
        self.fuse_calls = 0

    def to(self, device):
        self.to_calls.append(device)
        return self

    def fuse(self):
        self.fuse_calls += 1
        return self

    def predict(self, frame, **kwargs):
        return []


def _frame():
    return np.zeros((10, 10, 3), dtype=np.uint8)


def test_class_names_are_mapped_to_model_ids(monkeypatch):
    monkeypatch.setattr(yolo_mod, "YOLO", _FakeYOLO)
    det = yolo_mod.YoloObjectDetector(model_name="m.pt", conf=0.4)

    seen = {}

    def _predict(frame, **kwargs):
        seen.update(kwargs)
        return []

    det.model.predict = _predict
    assert det.detect(_frame()) == []
    assert seen["classes"] == [0, 14, 15, 16, 39, 41, 45]
    assert seen["conf"] == 0.4
    assert seen["device"] == "cpu"


def test_no_class_filter_when_classes_is_none(monkeypatch):
    monkeypatch.setattr(yolo_mod, "YOLO", _FakeYOLO)
    det = yolo_mod.YoloObjectDetector(model_name="m.pt", classes=None)
    assert "classes" not in det._predict_kwargs


def test_onnx_model_skips_to_and_fuse(monkeypatch):
    monkeypatch.setattr(yolo_mod, "YOLO", _FakeYOLO)
    det = yolo_mod.YoloObjectDetector(model_name="m.onnx")
    assert det.is_onnx is True
    assert det.model.to_calls == []
    assert det.model.fuse_calls == 0

    pt = yolo_mod.YoloObjectDetector(model_name="m.pt")
    assert pt.model.to_calls == ["cpu"]
    assert pt.model.fuse_calls == 1


def test_detect_parses_boxes_in_model_order(monkeypatch):
    monkeypatch.setattr(yolo_mod, "YOLO", _FakeYOLO)
    det = yolo_mod.YoloObjectDetector(model_name="m.pt")

    data = _FakeTensor(
        np.array([[10, 20, 30, 60, 0.9, 45], [0, 0, 40, 40, 0.7, 16]], dtype=np.float32)
    )
    det.model.predict = lambda *_a, **_k: [_FakeResult(boxes=_FakeBoxes(data), names=COCO_NAMES)]

    out = det.detect(_frame())
    assert data.cpu_called is True
    assert [d.class_name for d in out] == ["bowl", "dog"]
    assert out[0].bbox == (10.0, 20.0, 30.0, 60.0)
    assert abs(out[0].score - 0.9) < 1e-6
    assert out[1].centroid.center_x == 20.0


def test_detect_handles_missing_or_bad_boxes(monkeypatch):
    monkeypatch.setattr(yolo_mod, "YOLO", _FakeYOLO)
    det = yolo_mod.YoloObjectDetector(model_name="m.pt")

    det.model.predict = lambda *_a, **_k: [_FakeResult(boxes=None)]
    assert det.detect(_frame()) == []

    bad = _FakeBoxes(np.zeros((1, 3), dtype=np.float32))
    det.model.predict = lambda *_a, **_k: [_FakeResult(boxes=bad)]
    assert det.detect(_frame()) == []


def test_configure_torch_threads_from_env(monkeypatch):
    monkeypatch.setattr(yolo_mod.YoloObjectDetector, "_torch_threads_configured", False)

    class _Torch:
        def __init__(self):
            self.num_threads = None
            self.num_interop = None

        def set_num_threads(self, n):
            self.num_threads = n

        def set_num_interop_threads(self, n):
            self.num_interop = n

    torch = _Torch()
    monkeypatch.setitem(sys.modules, "torch", torch)
    monkeypatch.setenv("PAW_TORCH_THREADS", "2")
    monkeypatch.setenv("PAW_TORCH_INTEROP_THREADS", "3")
    monkeypatch.setattr(yolo_mod, "YOLO", _FakeYOLO)

    yolo_mod.YoloObjectDetector(model_name="m.onnx")
    assert torch.num_threads == 2
    assert torch.num_interop == 3
