"""Per-frame head-to-person association.

Heads are matched to persons greedily in person order: each person takes the
best-overlapping head that no earlier person has claimed. This is an
order-dependent approximation (not a globally optimal assignment), which is
fine for a single-desk camera with one or two people in view.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from deskwatch.core.geometry import pairwise_iou
from deskwatch.core.types import Association, Detection

HEAD_MATCH_MIN_IOU = 0.1
IOU_SUPPRESS_VALUE = -1.0


def associate_heads(
    persons: Sequence[Detection],
    heads: Sequence[Detection],
    min_iou: float = HEAD_MATCH_MIN_IOU,
) -> list[Association]:
    """Return one `Association` per person, in input order.

    A head is committed only when its IoU with the person is strictly greater
    than `min_iou`; ties between heads go to the lowest head index. The input
    sequences are not modified.
    """

    if not persons:
        return []
    if not heads:
        return [Association(person=p, head=None, iou=0.0) for p in persons]

    iou_matrix = pairwise_iou([p.box for p in persons], [h.box for h in heads])
    claimed = np.zeros(len(heads), dtype=bool)

    out: list[Association] = []
    for pi, person in enumerate(persons):
        row = np.where(claimed, IOU_SUPPRESS_VALUE, iou_matrix[pi])
        hi = int(row.argmax())
        best = float(row[hi])
        if best > min_iou:
            claimed[hi] = True
            out.append(Association(person=person, head=heads[hi], iou=best))
        else:
            out.append(Association(person=person, head=None, iou=0.0))
    return out
