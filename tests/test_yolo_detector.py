import asyncio

import numpy as np
import pytest

import deskwatch.core.detectors.yolo as yolo_mod
from deskwatch.core.types import DetectionClass


class _FakeBoxes:
    def __init__(self, data):
        self.data = data

    def __len__(self):
        return int(self.data.shape[0])


class _FakeResult:
    def __init__(self, boxes, names):
        self.boxes = boxes
        self.names = names


class _FakeYOLO:
    def __init__(self, model_name, results=None):
        self.model_name = model_name
        self.names = {0: "person", 1: "head", 2: "chair"}
        self.to_calls = []
        self.predict_calls = []
        self.results = results

    def to(self, device):
        self.to_calls.append(device)
        return self

    def predict(self, frame, **kwargs):
        self.predict_calls.append(kwargs)
        return self.results


FRAME = np.zeros((8, 8, 3), dtype=np.uint8)


def _install(monkeypatch: pytest.MonkeyPatch, results):
    created = []

    def factory(model_name):
        model = _FakeYOLO(model_name, results)
        created.append(model)
        return model

    monkeypatch.setattr(yolo_mod, "YOLO", factory)
    return created


def test_detect_maps_person_and_head_classes(monkeypatch: pytest.MonkeyPatch):
    data = np.array(
        [
            [0, 0, 100, 200, 0.9, 0],
            [20, 0, 60, 40, 0.8, 1],
            [0, 0, 10, 10, 0.95, 2],
        ],
        dtype=np.float32,
    )
    results = [_FakeResult(_FakeBoxes(data), {0: "Person", 1: "HEAD", 2: "chair"})]
    created = _install(monkeypatch, results)

    det = yolo_mod.YoloDeskDetector("model.pt", conf=0.2)
    out = det.detect(FRAME)

    assert created[0].to_calls == ["cpu"]
    assert created[0].predict_calls[0]["conf"] == 0.2
    assert [d.cls for d in out] == [DetectionClass.PERSON, DetectionClass.HEAD]
    person, head = out
    assert person.box.corners() == (0, 0, 100, 200)
    assert head.confidence == pytest.approx(0.8)


def test_custom_class_names(monkeypatch: pytest.MonkeyPatch):
    data = np.array([[0, 0, 10, 10, 0.9, 0]], dtype=np.float32)
    _install(monkeypatch, [_FakeResult(_FakeBoxes(data), ["face"])])
    det = yolo_mod.YoloDeskDetector("model.pt", head_classes=("face",))
    (only,) = det.detect(FRAME)
    assert only.cls is DetectionClass.HEAD


def test_empty_results(monkeypatch: pytest.MonkeyPatch):
    _install(monkeypatch, [])
    assert yolo_mod.YoloDeskDetector("model.pt").detect(FRAME) == []

    _install(monkeypatch, [_FakeResult(_FakeBoxes(np.zeros((0, 6))), {0: "person"})])
    assert yolo_mod.YoloDeskDetector("model.pt").detect(FRAME) == []


def test_onnx_models_are_not_moved(monkeypatch: pytest.MonkeyPatch):
    created = _install(monkeypatch, [])
    det = yolo_mod.YoloDeskDetector("model.onnx")
    assert det.is_onnx is True
    assert created[0].to_calls == []


def test_infer_runs_detect(monkeypatch: pytest.MonkeyPatch):
    data = np.array([[0, 0, 10, 10, 0.9, 0]], dtype=np.float32)
    _install(monkeypatch, [_FakeResult(_FakeBoxes(data), {0: "person"})])
    det = yolo_mod.YoloDeskDetector("model.pt")
    out = asyncio.run(det.infer(FRAME))
    assert len(out) == 1


def test_null_detector():
    det = yolo_mod.NullDetector()
    assert det.detect(FRAME) == []
    assert asyncio.run(det.infer(FRAME)) == []
