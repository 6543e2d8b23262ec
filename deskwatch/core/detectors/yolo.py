"""Ultralytics YOLO detection oracle.

Wraps a YOLO model trained with person and head classes and converts its
output into `Detection` objects. Torch stays an optional runtime dependency:
ONNX exports run without importing it.
"""

from __future__ import annotations

import asyncio
import importlib
import os
from collections.abc import Iterable
from contextlib import nullcontext
from typing import Any

import numpy as np
from ultralytics import YOLO

from deskwatch.core.types import Box, Detection, DetectionClass

DEFAULT_MODEL = "models/person-head.pt"


class YoloDeskDetector:
    """Person/head detector around Ultralytics YOLO.

    Class names reported by the model are mapped onto `DetectionClass` via
    `person_classes` / `head_classes` (case-insensitive); other classes are
    dropped. CPU threads can be tuned with `DW_TORCH_THREADS`.
    """

    _torch_threads_configured: bool = False

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        conf: float = 0.25,
        person_classes: Iterable[str] = ("person",),
        head_classes: Iterable[str] = ("head",),
        device: str = "cpu",
    ) -> None:
        """Create a detector.

        Args:
            model_name: Model path/name understood by Ultralytics (`.pt` or `.onnx`).
            conf: Confidence floor applied inside the Ultralytics predictor.
                Per-class thresholds are applied later by the session.
            person_classes: Model class names treated as persons.
            head_classes: Model class names treated as heads.
            device: Inference device for torch models.
        """

        self._configure_torch_threads_from_env()

        self.model_name = model_name
        self.is_onnx = model_name.lower().endswith(".onnx")
        self.device = device
        self._torch_inference_mode: Any | None = None
        if not self.is_onnx:
            try:
                torch = importlib.import_module("torch")
                self._torch_inference_mode = torch.inference_mode
            except Exception:
                self._torch_inference_mode = None
        # Ultralytics raises TypeError on .to(device) for ONNX exports.
        self.model = YOLO(model_name)
        if not self.is_onnx:
            self.model.to(self.device)

        self.conf = conf
        self._class_map: dict[str, DetectionClass] = {}
        for name in person_classes:
            self._class_map[str(name).lower()] = DetectionClass.PERSON
        for name in head_classes:
            self._class_map[str(name).lower()] = DetectionClass.HEAD
        self._predict_kwargs = {"conf": self.conf, "verbose": False, "device": self.device}

    @classmethod
    def _configure_torch_threads_from_env(cls) -> None:
        """Configure torch thread count from `DW_TORCH_THREADS` (one-time)."""

        if cls._torch_threads_configured:
            return
        cls._torch_threads_configured = True

        threads_s = os.getenv("DW_TORCH_THREADS")
        if not threads_s or not threads_s.strip():
            return
        try:
            torch = importlib.import_module("torch")
            torch.set_num_threads(max(1, int(threads_s)))
        except Exception:
            return

    def _resolve_class(self, names: Any, cls_id: int) -> DetectionClass | None:
        if isinstance(names, dict):
            name = names.get(cls_id)
        elif isinstance(names, (list, tuple)) and 0 <= cls_id < len(names):
            name = names[cls_id]
        else:
            name = None
        if name is None:
            return None
        return self._class_map.get(str(name).lower())

    def detect(self, frame: np.ndarray) -> list[Detection]:
        """Run inference on a single frame and return person/head detections."""

        infer_ctx = (
            self._torch_inference_mode()
            if self._torch_inference_mode is not None
            else nullcontext()
        )
        with infer_ctx:
            results = self.model.predict(frame, **self._predict_kwargs)

        if not results:
            return []
        result = results[0]
        boxes = getattr(result, "boxes", None)
        if boxes is None or len(boxes) == 0:
            return []
        names = getattr(result, "names", None) or getattr(self.model, "names", None)

        data = boxes.data
        if hasattr(data, "cpu"):
            data = data.cpu()
        data_np = data.numpy() if hasattr(data, "numpy") else np.asarray(data)
        # Ultralytics Boxes.data = (x1, y1, x2, y2, conf, cls)
        if data_np.ndim != 2 or data_np.shape[1] < 6:
            return []

        out: list[Detection] = []
        for x1, y1, x2, y2, conf_v, cls_v in data_np[:, :6]:
            det_cls = self._resolve_class(names, int(cls_v))
            if det_cls is None:
                continue
            out.append(
                Detection(
                    cls=det_cls,
                    box=Box.from_xyxy(float(x1), float(y1), float(x2), float(y2)),
                    confidence=float(conf_v),
                )
            )
        return out

    async def infer(self, frame: np.ndarray) -> list[Detection]:
        """Run `detect` off the event loop."""

        return await asyncio.to_thread(self.detect, frame)


class NullDetector:
    """Detector that never sees anyone (offline dry runs)."""

    def detect(self, frame: np.ndarray) -> list[Detection]:
        return []

    async def infer(self, frame: np.ndarray) -> list[Detection]:
        return self.detect(frame)
