"""Box overlap geometry."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from deskwatch.core.types import Box


def iou(boxA: Box, boxB: Box) -> float:
    """Compute the intersection-over-union (IoU) of two center/size boxes.

    Degenerate boxes (zero or negative extent) never match: the result is 0.0
    whenever the union is empty.
    """

    ax1, ay1, ax2, ay2 = boxA.corners()
    bx1, by1, bx2, by2 = boxB.corners()
    xA = max(ax1, bx1)
    yA = max(ay1, by1)
    xB = min(ax2, bx2)
    yB = min(ay2, by2)
    interW = max(0.0, xB - xA)
    interH = max(0.0, yB - yA)
    interArea = interW * interH
    boxAArea = max(0.0, ax2 - ax1) * max(0.0, ay2 - ay1)
    boxBArea = max(0.0, bx2 - bx1) * max(0.0, by2 - by1)
    union = boxAArea + boxBArea - interArea
    if not union > 0:
        return 0.0
    return min(1.0, max(0.0, interArea / float(union)))


def _corners_array(boxes: Sequence[Box]) -> np.ndarray:
    if not boxes:
        return np.zeros((0, 4), dtype=np.float64)
    return np.array([b.corners() for b in boxes], dtype=np.float64)


def pairwise_iou(boxes_a: Sequence[Box], boxes_b: Sequence[Box]) -> np.ndarray:
    """Return the (len(a), len(b)) IoU matrix, matching `iou` element-wise."""

    a = _corners_array(boxes_a)
    b = _corners_array(boxes_b)
    if a.shape[0] == 0 or b.shape[0] == 0:
        return np.zeros((a.shape[0], b.shape[0]), dtype=np.float64)

    xA = np.maximum(a[:, None, 0], b[None, :, 0])
    yA = np.maximum(a[:, None, 1], b[None, :, 1])
    xB = np.minimum(a[:, None, 2], b[None, :, 2])
    yB = np.minimum(a[:, None, 3], b[None, :, 3])
    inter = np.maximum(0.0, xB - xA) * np.maximum(0.0, yB - yA)
    a_area = np.maximum(0.0, a[:, 2] - a[:, 0]) * np.maximum(0.0, a[:, 3] - a[:, 1])
    b_area = np.maximum(0.0, b[:, 2] - b[:, 0]) * np.maximum(0.0, b[:, 3] - b[:, 1])
    union = a_area[:, None] + b_area[None, :] - inter
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.where(union > 0.0, inter / union, 0.0)
    return np.clip(np.nan_to_num(out, nan=0.0), 0.0, 1.0)
