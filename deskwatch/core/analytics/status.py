"""Per-frame status classification and temporal smoothing."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence

from deskwatch.core.types import Association, Status

DEFAULT_WINDOW = 30
MIN_WINDOW = 1
MAX_WINDOW = 300


def classify(associations: Sequence[Association]) -> Status:
    """Return the raw status for one frame.

    No person in view is ABSENT; any person with a visible head is WORKING;
    persons without heads (turned away, leaning back) are IDLE.
    """

    if not associations:
        return Status.ABSENT
    if any(a.head is not None for a in associations):
        return Status.WORKING
    return Status.IDLE


def majority(statuses: Iterable[Status]) -> Status | None:
    """Return the mode of `statuses`, or None when empty.

    Ties go to the tied status that was seen most recently.
    """

    counts: dict[Status, int] = {}
    last_seen: dict[Status, int] = {}
    for i, status in enumerate(statuses):
        counts[status] = counts.get(status, 0) + 1
        last_seen[status] = i
    if not counts:
        return None
    return max(counts, key=lambda s: (counts[s], last_seen[s]))


class StatusSmoother:
    """Sliding-window majority vote over raw per-frame statuses.

    The window is counted in frames, not seconds. Frames arrive as fast as
    inference completes, so the same window covers a shorter span on a fast
    detector and a longer one on a slow detector.
    """

    def __init__(self, window: int = DEFAULT_WINDOW) -> None:
        self._history: deque[Status] = deque(maxlen=clamp_window(window))

    @property
    def window(self) -> int:
        return int(self._history.maxlen or DEFAULT_WINDOW)

    def resize(self, window: int) -> int:
        """Change the window capacity, dropping the oldest entries when shrinking."""

        size = clamp_window(window)
        if size != self.window:
            self._history = deque(self._history, maxlen=size)
        return size

    def push(self, raw: Status) -> Status:
        """Record a raw status and return the smoothed status."""

        self._history.append(raw)
        return majority(self._history) or raw

    def working_share(self) -> float:
        """Percentage of WORKING frames in the current window."""

        if not self._history:
            return 0.0
        working = sum(1 for s in self._history if s is Status.WORKING)
        return working / len(self._history) * 100.0

    def history(self) -> list[Status]:
        return list(self._history)

    def clear(self) -> None:
        self._history.clear()

    def __len__(self) -> int:
        return len(self._history)


def clamp_window(window: int) -> int:
    return max(MIN_WINDOW, min(MAX_WINDOW, int(window)))
