"""Shared type definitions used across the monitor.

Small, stable types (boxes, detections, associations, statuses and per-frame
results) live here so detector, analytics and API code can stay strongly typed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

Frame = np.ndarray


class DetectionClass(str, Enum):
    """Object classes the detection oracle reports."""

    PERSON = "person"
    HEAD = "head"


class Status(str, Enum):
    """Desk worker status, used both raw (per frame) and smoothed."""

    WORKING = "WORKING"
    IDLE = "IDLE"
    ABSENT = "ABSENT"


@dataclass(frozen=True)
class Box:
    """Axis-aligned box in pixel coordinates, stored as center + size."""

    center_x: float
    center_y: float
    width: float
    height: float

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> Box:
        """Build a box from corner coordinates."""

        return cls(
            center_x=(x1 + x2) / 2.0,
            center_y=(y1 + y2) / 2.0,
            width=x2 - x1,
            height=y2 - y1,
        )

    def corners(self) -> tuple[float, float, float, float]:
        """Return (x1, y1, x2, y2)."""

        half_w = self.width / 2.0
        half_h = self.height / 2.0
        return (
            self.center_x - half_w,
            self.center_y - half_h,
            self.center_x + half_w,
            self.center_y + half_h,
        )


@dataclass
class Detection:
    """One candidate object returned by the oracle for a single frame."""

    cls: DetectionClass
    box: Box
    confidence: float


@dataclass
class Association:
    """A person detection with the head matched to it (if any)."""

    person: Detection
    head: Detection | None
    iou: float = 0.0


@dataclass
class FrameResult:
    """Outcome of one processed frame."""

    frame_id: int
    timestamp: float
    raw_status: Status
    status: Status
    changed: bool
    persons: int
    heads: int
    associations: list[Association] = field(default_factory=list)
    fps: float = 0.0
