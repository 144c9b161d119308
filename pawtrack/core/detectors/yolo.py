"""Ultralytics YOLO detector integration.

Torch stays an optional runtime dependency: ONNX exports run without
importing torch.
"""

from __future__ import annotations

import importlib
import os
from contextlib import nullcontext
from typing import Any

import numpy as np
from ultralytics import YOLO

from pawtrack.core.types import Detection

# Subjects plus the feeding objects the classifier looks for.
DEFAULT_CLASSES = ("dog", "cat", "bird", "person", "bowl", "cup", "bottle")


class YoloObjectDetector:
    """Multi-class detector wrapper around Ultralytics YOLO.

    CPU-only by default; torch thread counts can be tuned via env vars
    (`PAW_TORCH_THREADS`, `PAW_TORCH_INTEROP_THREADS`).
    """

    _torch_threads_configured: bool = False

    def __init__(
        self,
        model_name: str = "yolo11n.pt",
        conf: float = 0.5,
        task: str | None = None,
        classes: tuple[str, ...] | None = DEFAULT_CLASSES,
    ):
        """Create a detector.

        Args:
            model_name: Model path/name understood by Ultralytics (e.g. `yolo11n.pt`
                or an `.onnx` export).
            conf: Confidence threshold applied inside the Ultralytics predictor.
            task: Optional Ultralytics task override.
            classes: Class names to keep. `None` keeps every class.
        """

        self._configure_torch_threads_from_env()

        self.model_name = model_name
        self.is_onnx = model_name.lower().endswith(".onnx")
        self.device: str = "cpu"
        self._torch_inference_mode: Any | None = None
        if not self.is_onnx:
            try:
                torch = importlib.import_module("torch")
                self._torch_inference_mode = torch.inference_mode
            except Exception:
                self._torch_inference_mode = None
        # Avoid .to(device) on ONNX exports; Ultralytics raises TypeError
        self.model = YOLO(model_name, task=task)

        if not self.is_onnx:
            try:
                self.model.to(self.device)
            except Exception:
                # predict(device='cpu') still enforces CPU.
                pass
        self.conf = conf
        self.names: dict[int, str] = dict(getattr(self.model, "names", None) or {})
        self._predict_kwargs: dict[str, Any] = {
            "conf": self.conf,
            "verbose": False,
            "device": self.device,
        }
        class_ids = self._class_ids(classes)
        if class_ids:
            self._predict_kwargs["classes"] = class_ids

        if not self.is_onnx:
            try:
                self.model.fuse()
            except Exception:
                pass

    def _class_ids(self, classes: tuple[str, ...] | None) -> list[int]:
        """Map class names to model class ids (unknown names are ignored)."""

        if not classes or not self.names:
            return []
        wanted = set(classes)
        return sorted(idx for idx, name in self.names.items() if name in wanted)

    @classmethod
    def _configure_torch_threads_from_env(cls) -> None:
        """Configure torch thread counts from environment variables (one-time)."""

        if cls._torch_threads_configured:
            return
        cls._torch_threads_configured = True

        threads_s = os.getenv("PAW_TORCH_THREADS")
        interop_s = os.getenv("PAW_TORCH_INTEROP_THREADS")
        if threads_s is None and interop_s is None:
            return

        try:
            torch = importlib.import_module("torch")

            if threads_s is not None and threads_s.strip():
                torch.set_num_threads(max(1, int(threads_s)))
            if interop_s is not None and interop_s.strip():
                torch.set_num_interop_threads(max(1, int(interop_s)))
        except Exception:
            return

    def detect(self, frame: np.ndarray, **kwargs: Any) -> list[Detection]:
        """Run inference on a single frame.

        Returns:
            Detections in model output order, in full-frame pixel coordinates.
        """

        infer_ctx = (
            self._torch_inference_mode()
            if self._torch_inference_mode is not None
            else nullcontext()
        )

        with infer_ctx:
            results = self.model.predict(frame, **{**self._predict_kwargs, **kwargs})

        if not results:
            return []

        result = results[0]
        boxes = getattr(result, "boxes", None)
        if boxes is None or len(boxes) == 0:
            return []

        names = getattr(result, "names", None) or self.names

        data = getattr(boxes, "data", None)
        if data is None:
            return []
        if hasattr(data, "cpu"):
            data = data.cpu()
        data_np = data.numpy() if hasattr(data, "numpy") else np.asarray(data)
        # Ultralytics Boxes.data = (x1,y1,x2,y2,conf,cls)
        if data_np.ndim != 2 or data_np.shape[1] < 6:
            return []

        out: list[Detection] = []
        for row in data_np:
            cls_id = int(row[5])
            out.append(
                Detection(
                    class_name=str(names.get(cls_id, cls_id)),
                    score=float(row[4]),
                    bbox=(float(row[0]), float(row[1]), float(row[2]), float(row[3])),
                )
            )
        return out
