"""Video source abstractions.

The engine consumes frames through a small interface (`VideoSource`) so the
capture implementation (webcam/file/RTSP) can be swapped without affecting the
monitoring session.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import cv2

from deskwatch.core.types import Frame

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

    def __init__(self, source: str | int, api_preference: int = cv2.CAP_ANY) -> None:
        self.cap = cv2.VideoCapture(source, api_preference)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {source}")

    def read(self) -> Frame | None:
        """Read the next frame from the underlying OpenCV capture."""

        ok, frame = self.cap.read()
        if not ok:
            return None
        return frame

    def close(self) -> None:
        """Release the underlying OpenCV capture."""

        self.cap.release()


class WebcamSource(OpenCVSource):
    """Local camera by device index, with a one-frame driver buffer."""

    def __init__(self, index: int = 0) -> None:
        super().__init__(index)
        try:
            self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except Exception:
            logger.debug("Camera backend does not support CAP_PROP_BUFFERSIZE")


class FileSource(OpenCVSource):
    """Video file source paced to the container frame rate.

    Frames are released in real time (a 10 minute clip takes 10 minutes) so the
    wall-clock time accounting matches what the camera would have seen. At EOF
    the file rewinds when `loop` is set, otherwise `read` returns `None`.
    """

    def __init__(self, path: str, loop: bool = False) -> None:
        self._path = path
        self.loop = loop
        self._start_perf: float | None = None
        self._frame_index = 0
        super().__init__(path)
        fps = float(self.cap.get(cv2.CAP_PROP_FPS) or 0.0)
        self.fps = fps if fps > 0 else 0.0

    def _pace(self) -> None:
        if self._start_perf is None:
            self._start_perf = time.perf_counter()
            self._frame_index = 0
        self._frame_index += 1
        if self.fps > 0:
            delay = self._frame_index / self.fps - (time.perf_counter() - self._start_perf)
            if delay > 0:
                time.sleep(delay)

    def read(self) -> Frame | None:
        """Read the next frame in real time, rewinding at EOF when looping."""

        frame = super().read()
        if frame is None and self.loop and self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0):
            self._start_perf = None
            frame = super().read()
        if frame is None:
            return None
        self._pace()
        return frame


class RTSPSource(OpenCVSource):
    """Network stream decoded through OpenCV's FFMPEG backend."""

    def __init__(self, url: str) -> None:
        super().__init__(url, cv2.CAP_FFMPEG)
