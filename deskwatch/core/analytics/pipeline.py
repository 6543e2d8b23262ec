"""Monitoring session: the per-frame detection-to-metrics pipeline.

`MonitorPipeline` is an explicit session context. It owns the status smoother,
the productivity accumulator and the session event log, and publishes results
through listeners instead of touching any UI. Several sessions can run side by
side (tests create one per case).
"""

from __future__ import annotations

import copy
import logging
import threading
from collections import deque
from collections.abc import Callable, Sequence
from datetime import tzinfo
from typing import Any, Protocol

import numpy as np

from deskwatch.core.analytics.association import HEAD_MATCH_MIN_IOU, associate_heads
from deskwatch.core.analytics.insights import Insight, generate_insights
from deskwatch.core.analytics.productivity import ProductivityAccumulator
from deskwatch.core.analytics.status import (
    DEFAULT_WINDOW,
    MAX_WINDOW,
    MIN_WINDOW,
    StatusSmoother,
    classify,
)
from deskwatch.core.timeutil import Clock, SystemClock
from deskwatch.core.types import Association, Detection, DetectionClass, FrameResult, Status

logger = logging.getLogger(__name__)

SESSION_EVENT_CAPACITY = 500

STATUS_MESSAGES: dict[Status, str] = {
    Status.WORKING: "Now working",
    Status.IDLE: "Now idle (person detected but head not visible)",
    Status.ABSENT: "No person detected",
}

StatusListener = Callable[[Status, list[Association]], None]
MetricsListener = Callable[[dict[str, Any], dict[str, dict[str, Any]], Insight], None]


class DeskDetector(Protocol):
    """Detection oracle: returns person and head detections for a frame."""

    async def infer(self, frame: np.ndarray) -> list[Detection]:
        """Return detections for `frame`. May raise."""


def _clamp(name: str, value: float, lo: float, hi: float) -> float:
    v = float(value)
    clamped = max(lo, min(hi, v))
    if clamped != v:
        logger.warning("%s=%s out of range [%s, %s]; clamped to %s", name, value, lo, hi, clamped)
    return clamped


class SessionData:
    """Session start time and a capped log of status-change events."""

    def __init__(self, start_ms: float) -> None:
        self.start_time = float(start_ms)
        self.status_changes: deque[dict[str, Any]] = deque(maxlen=SESSION_EVENT_CAPACITY)

    def log(self, time_ms: float, status: str | None, message: str) -> None:
        self.status_changes.append({"time": float(time_ms), "status": status, "message": message})

    def clear(self, time_ms: float) -> None:
        """Drop all logged events, leaving a single "log cleared" entry."""

        self.status_changes.clear()
        self.log(time_ms, "INFO", "Activity log cleared")

    def to_dict(self) -> dict[str, Any]:
        return {"startTime": self.start_time, "statusChanges": list(self.status_changes)}

    @classmethod
    def from_dict(cls, data: dict[str, Any], fallback_start_ms: float) -> SessionData:
        session = cls(float(data.get("startTime", fallback_start_ms)))
        for event in data.get("statusChanges", []) or []:
            if isinstance(event, dict) and "time" in event:
                session.status_changes.append(dict(event))
        return session


class MonitorPipeline:
    """Per-frame pipeline: detections -> association -> status -> metrics.

    Thresholds and the smoothing window are live tunables; assigning an
    out-of-range value clamps it instead of failing.
    """

    def __init__(
        self,
        detector: DeskDetector | None = None,
        clock: Clock | None = None,
        *,
        person_confidence: float = 0.40,
        head_confidence: float = 0.30,
        head_match_iou: float = HEAD_MATCH_MIN_IOU,
        status_window: int = DEFAULT_WINDOW,
        enable_alerts: bool = False,
        tz: tzinfo | None = None,
        on_status: StatusListener | None = None,
        on_metrics: MetricsListener | None = None,
    ) -> None:
        self.detector = detector
        self.clock: Clock = clock or SystemClock()
        self.tz = tz
        self.enable_alerts = enable_alerts

        self.person_confidence = person_confidence
        self.head_confidence = head_confidence
        self.head_match_iou = head_match_iou
        self.smoother = StatusSmoother(status_window)

        start = self.clock.now_ms()
        self.accumulator = ProductivityAccumulator(start, tz=tz)
        self.session = SessionData(start)

        self._status_listeners: list[StatusListener] = [on_status] if on_status else []
        self._metrics_listeners: list[MetricsListener] = [on_metrics] if on_metrics else []

        self.frame_id = 0
        self.status: Status | None = None
        self.insight = Insight()
        self.last_result: FrameResult | None = None
        self.last_error: str | None = None
        self.closed = False
        # Guards session state for readers on other threads (HTTP).
        self.lock = threading.RLock()
        self._fps = 0.0
        self._last_frame_at: float | None = None

        self.session.log(start, "STARTING", "Productivity monitoring session started")

    # Live tunables

    @property
    def person_confidence(self) -> float:
        return self._person_confidence

    @person_confidence.setter
    def person_confidence(self, value: float) -> None:
        self._person_confidence = _clamp("person_confidence", value, 0.0, 1.0)

    @property
    def head_confidence(self) -> float:
        return self._head_confidence

    @head_confidence.setter
    def head_confidence(self, value: float) -> None:
        self._head_confidence = _clamp("head_confidence", value, 0.0, 1.0)

    @property
    def head_match_iou(self) -> float:
        return self._head_match_iou

    @head_match_iou.setter
    def head_match_iou(self, value: float) -> None:
        self._head_match_iou = _clamp("head_match_iou", value, 0.0, 1.0)

    @property
    def status_window(self) -> int:
        return self.smoother.window

    @status_window.setter
    def status_window(self, value: int) -> None:
        size = int(_clamp("status_window", value, MIN_WINDOW, MAX_WINDOW))
        with self.lock:
            self.smoother.resize(size)

    # Listeners

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def add_metrics_listener(self, listener: MetricsListener) -> None:
        self._metrics_listeners.append(listener)

    def _publish_status(self, status: Status, associations: list[Association]) -> None:
        for listener in list(self._status_listeners):
            try:
                listener(status, associations)
            except Exception:
                logger.exception("Status listener failed")

    def _publish_metrics(self) -> None:
        if not self._metrics_listeners:
            return
        ledger = self.accumulator.ledger_snapshot()
        hourly = self.accumulator.hourly_snapshot()
        for listener in list(self._metrics_listeners):
            try:
                listener(ledger, hourly, copy.deepcopy(self.insight))
            except Exception:
                logger.exception("Metrics listener failed")

    # Frame processing

    async def process_frame(self, frame: np.ndarray) -> FrameResult | None:
        """Run the detector on `frame` and ingest its detections.

        A failing detector skips the frame: nothing is mutated and None is
        returned.
        """

        if self.detector is None:
            raise RuntimeError("MonitorPipeline has no detector")
        try:
            detections = await self.detector.infer(frame)
        except Exception:
            self.last_error = "Detection failed"
            logger.exception(self.last_error)
            return None
        self.last_error = None
        return self.ingest(detections)

    def ingest(self, detections: Sequence[Detection], now_ms: float | None = None) -> FrameResult:
        """Process one frame's detections and return the frame result."""

        with self.lock:
            return self._ingest(detections, now_ms)

    def _ingest(self, detections: Sequence[Detection], now_ms: float | None) -> FrameResult:
        if self.closed:
            raise RuntimeError("MonitorPipeline is closed")
        now = self.clock.now_ms() if now_ms is None else float(now_ms)

        persons = [
            d
            for d in detections
            if d.cls is DetectionClass.PERSON and d.confidence >= self._person_confidence
        ]
        heads = [
            d
            for d in detections
            if d.cls is DetectionClass.HEAD and d.confidence >= self._head_confidence
        ]
        associations = associate_heads(persons, heads, self._head_match_iou)
        raw = classify(associations)
        smoothed = self.smoother.push(raw)

        previous = self.status
        changed = smoothed is not previous
        self.status = smoothed
        if changed:
            self._on_status_change(previous, smoothed, now)
        self._publish_status(smoothed, associations)

        self.accumulator.update(smoothed, now)
        self._refresh_insight()

        self.frame_id += 1
        self._update_fps(now)
        result = FrameResult(
            frame_id=self.frame_id,
            timestamp=now,
            raw_status=raw,
            status=smoothed,
            changed=changed,
            persons=len(persons),
            heads=len(heads),
            associations=associations,
            fps=self._fps,
        )
        self.last_result = result
        self._publish_metrics()
        return result

    def _on_status_change(self, previous: Status | None, status: Status, now: float) -> None:
        self.session.log(now, status.value, STATUS_MESSAGES[status])
        if self.enable_alerts and previous is not None:
            logger.warning("Status alert: %s -> %s", previous.value, status.value)
        else:
            logger.info("Status changed: %s", status.value)

    def _update_fps(self, now: float) -> None:
        if self._last_frame_at is not None:
            dt = now - self._last_frame_at
            if dt > 0:
                instant = 1000.0 / dt
                alpha = 0.1
                self._fps = instant if self._fps == 0 else (self._fps * (1.0 - alpha) + instant * alpha)
        self._last_frame_at = now

    # Read side

    @property
    def fps(self) -> float:
        return self._fps

    def recent_productivity(self) -> float:
        """Share of WORKING frames in the smoothing window, in percent."""

        return self.smoother.working_share()

    def export_snapshot(self) -> dict[str, Any]:
        """Return {hourlyData, ledger, sessionData} as plain, detached data."""

        with self.lock:
            return copy.deepcopy(
                {
                    "hourlyData": self.accumulator.hourly_snapshot(),
                    "ledger": self.accumulator.ledger_snapshot(),
                    "sessionData": self.session.to_dict(),
                }
            )

    def stats(self) -> dict[str, Any]:
        """Return current status and headline metrics."""

        with self.lock:
            acc = self.accumulator
            last = self.last_result
            now = acc.ledger.last_transition_time or acc.origin
            return {
                "status": self.status.value if self.status is not None else None,
                "frame_id": self.frame_id,
                "persons": last.persons if last is not None else 0,
                "heads": last.heads if last is not None else 0,
                "fps": self._fps,
                "working_time": acc.working_time(),
                "idle_time": acc.idle_time(),
                "overall_productivity": acc.overall_productivity(),
                "recent_productivity": self.recent_productivity(),
                "session_duration": max(0.0, now - self.session.start_time),
            }

    def hourly(self) -> list[dict[str, Any]]:
        with self.lock:
            return [b.to_dict() for b in self.accumulator.buckets]

    def insights(self) -> Insight:
        with self.lock:
            return copy.deepcopy(self.insight)

    # Lifecycle

    def log_event(self, status: str | None, message: str) -> None:
        """Append a lifecycle event to the session log."""

        with self.lock:
            self.session.log(self.clock.now_ms(), status, message)

    def _refresh_insight(self) -> None:
        self.insight = generate_insights(
            self.accumulator.buckets,
            self.accumulator.working_time(),
            self.accumulator.idle_time(),
        )

    def restore(self, stored: dict[str, Any], now_ms: float | None = None) -> None:
        """Resume from a snapshot produced by `export_snapshot` (same day)."""

        now = self.clock.now_ms() if now_ms is None else float(now_ms)
        with self.lock:
            self.accumulator.restore(stored, now)
            session = stored.get("sessionData")
            if isinstance(session, dict):
                self.session = SessionData.from_dict(session, now)
            self.status = None
            self.smoother.clear()
            self._refresh_insight()
            self.session.log(now, "RESTORED", "Session restored from storage")

    def close_day(self, end_ms: float) -> None:
        """Account the current status up to `end_ms` (the end of the local day)."""

        with self.lock:
            self.accumulator.close_day(end_ms)

    def clear_log(self) -> None:
        """Empty the session event log."""

        with self.lock:
            self.session.clear(self.clock.now_ms())

    def reset(self, now_ms: float | None = None, carry_status: bool = False) -> None:
        """Start a fresh day: clear the ledger, buckets, window and event log.

        With `carry_status` the current status stays open from `now_ms`, so a
        worker seated across midnight keeps accruing working time in the new day.
        """

        now = self.clock.now_ms() if now_ms is None else float(now_ms)
        with self.lock:
            carried = self.accumulator.status if carry_status else None
            self.accumulator.reset(now, status=carried)
            self.smoother.clear()
            self.status = None
            self.insight = Insight()
            self.session = SessionData(now)
            self.session.log(now, "RESET", "Daily statistics reset")

    def close(self) -> None:
        """End the session. No listeners fire afterwards."""

        with self.lock:
            if self.closed:
                return
            self.session.log(self.clock.now_ms(), "ENDED", "Monitoring session ended")
            self.closed = True
            self._status_listeners.clear()
            self._metrics_listeners.clear()
