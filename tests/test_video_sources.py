from pathlib import Path

import cv2
import numpy as np
import pytest

from deskwatch.core.video_sources.base import FileSource, OpenCVSource


def _make_video(path: Path, frames: int = 3, fps: float = 50.0, size=(32, 32)) -> None:
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), fps, size)
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG video on this platform")
    for _ in range(frames):
        writer.write(np.zeros((size[1], size[0], 3), dtype=np.uint8))
    writer.release()
    cap = cv2.VideoCapture(str(path))
    ok, _ = cap.read()
    cap.release()
    if not ok:
        pytest.skip("OpenCV backend cannot read generated video on this platform")


def test_missing_source_raises(tmp_path: Path):
    with pytest.raises(RuntimeError):
        OpenCVSource(str(tmp_path / "missing.avi"))


def test_file_source_stops_at_eof(tmp_path: Path):
    path = tmp_path / "clip.avi"
    _make_video(path)
    src = FileSource(str(path))
    try:
        frames = [src.read() for _ in range(4)]
    finally:
        src.close()
    assert sum(f is not None for f in frames) == 3
    assert frames[-1] is None


def test_file_source_loops(tmp_path: Path):
    path = tmp_path / "clip.avi"
    _make_video(path, frames=2)
    src = FileSource(str(path), loop=True)
    try:
        frames = [src.read() for _ in range(5)]
    finally:
        src.close()
    assert all(f is not None for f in frames)
