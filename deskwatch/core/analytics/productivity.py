"""Productivity time accounting.

`ProductivityAccumulator` is a three-state machine (WORKING / IDLE / ABSENT)
driven once per frame by the smoothed status. It keeps two views of the same
wall-clock time:

- a ledger that splits time into working and idle (ABSENT folds into idle),
  with at most one open interval at any moment, and
- 24 local-hour buckets that split time into working, idle and absent.

Time is conserved: the live working + idle totals always equal the time
elapsed since the ledger origin, regardless of frame rate or how the status
flickers.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any

from deskwatch.core.timeutil import hour_of, next_hour_ms
from deskwatch.core.types import Status

SAMPLE_LOG_CAPACITY = 100
DEFAULT_ELAPSED_MS = 1000.0
HOURS = 24


def _span(start: float, end: float) -> float:
    return max(0.0, end - start)


def productivity_score(working: float, idle: float, absent: float = 0.0) -> float:
    """Return working / (working + idle + absent) * 100, or 0 when empty."""

    total = working + idle + absent
    if total <= 0:
        return 0.0
    return working / total * 100.0


@dataclass
class Sample:
    """One per-frame entry in an hour's sample log."""

    timestamp: float
    status: Status
    duration: float

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "status": self.status.value, "duration": self.duration}


@dataclass
class HourBucket:
    """Working/idle/absent time attributed to one local hour of the day."""

    hour: int
    working_time: float = 0.0
    idle_time: float = 0.0
    absent_time: float = 0.0
    status_changes: int = 0
    productivity_score: float = 0.0
    samples: deque[Sample] = field(default_factory=lambda: deque(maxlen=SAMPLE_LOG_CAPACITY))

    @property
    def total_time(self) -> float:
        return self.working_time + self.idle_time + self.absent_time

    def add(self, status: Status, duration_ms: float) -> None:
        """Attribute `duration_ms` to the field matching `status`."""

        if duration_ms > 0:
            if status is Status.WORKING:
                self.working_time += duration_ms
            elif status is Status.IDLE:
                self.idle_time += duration_ms
            else:
                self.absent_time += duration_ms
        self.productivity_score = productivity_score(
            self.working_time, self.idle_time, self.absent_time
        )

    def record_sample(self, timestamp: float, status: Status, duration: float) -> None:
        self.samples.append(Sample(timestamp=timestamp, status=status, duration=duration))

    def to_dict(self) -> dict[str, Any]:
        return {
            "hour": self.hour,
            "workingTime": self.working_time,
            "idleTime": self.idle_time,
            "absentTime": self.absent_time,
            "statusChanges": self.status_changes,
            "productivityScore": self.productivity_score,
            "samples": [s.to_dict() for s in self.samples],
        }

    @classmethod
    def from_dict(cls, hour: int, data: dict[str, Any]) -> HourBucket:
        bucket = cls(
            hour=hour,
            working_time=float(data.get("workingTime", 0.0)),
            idle_time=float(data.get("idleTime", 0.0)),
            absent_time=float(data.get("absentTime", 0.0)),
            status_changes=int(data.get("statusChanges", 0)),
        )
        bucket.productivity_score = productivity_score(
            bucket.working_time, bucket.idle_time, bucket.absent_time
        )
        for raw in data.get("samples", [])[-SAMPLE_LOG_CAPACITY:]:
            try:
                bucket.record_sample(
                    float(raw["timestamp"]), Status(raw["status"]), float(raw["duration"])
                )
            except (KeyError, TypeError, ValueError):
                continue
        return bucket


@dataclass
class TimeLedger:
    """Closed working/idle totals plus the currently open interval."""

    total_working_time: float = 0.0
    total_idle_time: float = 0.0
    working_start_time: float | None = None
    idle_start_time: float | None = None
    last_transition_time: float | None = None


class ProductivityAccumulator:
    """Stateful time ledger and hourly buckets for one monitoring day.

    Args:
        start_ms: Ledger origin. The ledger starts idle at this instant.
        tz: Time zone used to derive hour buckets (local time when None).
        default_elapsed_ms: Duration attributed to the very first observation,
            which has no previous frame to measure from.
    """

    def __init__(
        self,
        start_ms: float,
        tz: tzinfo | None = None,
        default_elapsed_ms: float = DEFAULT_ELAPSED_MS,
    ) -> None:
        self.tz = tz
        self.default_elapsed_ms = float(default_elapsed_ms)
        self.reset(start_ms)

    def reset(self, start_ms: float, status: Status | None = None) -> None:
        """Discard all accumulated time and restart the ledger at `start_ms`.

        The ledger restarts idle unless `status` is given, in which case that
        status continues from `start_ms` (a day rollover mid-session).
        """

        self.origin = float(start_ms)
        self.ledger = TimeLedger(idle_start_time=self.origin)
        self.buckets: list[HourBucket] = [HourBucket(hour=h) for h in range(HOURS)]
        self.status: Status | None = None
        if status is not None:
            self._enter(status, self.origin)
            self.ledger.last_transition_time = self.origin
            self.status = status

    def close_day(self, end_ms: float) -> None:
        """Attribute the time up to `end_ms` to the current status.

        Used at a day boundary: the open interval and the last hour bucket are
        brought up to `end_ms` without recording a frame sample, so a snapshot
        taken afterwards covers the day up to its end.
        """

        end = float(end_ms)
        last = self.ledger.last_transition_time
        if self.status is not None and last is not None and end > last:
            self._attribute(self.status, last, end)
        if last is None or end > last:
            self.ledger.last_transition_time = end

    def update(self, status: Status, now_ms: float) -> bool:
        """Advance the state machine by one frame. Returns True on a status change."""

        now = float(now_ms)
        changed = status is not self.status
        if changed:
            self._enter(status, now)
            if self.status is not None:
                self.buckets[hour_of(now, self.tz)].status_changes += 1
        self._tick(status, now)
        self.status = status
        return changed

    def _enter(self, status: Status, now: float) -> None:
        led = self.ledger
        if status is Status.WORKING:
            if led.idle_start_time is not None:
                led.total_idle_time += _span(led.idle_start_time, now)
                led.idle_start_time = None
            if led.working_start_time is None:
                led.working_start_time = now
        elif status is Status.IDLE:
            if led.working_start_time is not None:
                led.total_working_time += _span(led.working_start_time, now)
                led.working_start_time = None
            if led.idle_start_time is None:
                led.idle_start_time = now
        else:
            if led.working_start_time is not None:
                led.total_working_time += _span(led.working_start_time, now)
                led.working_start_time = None
            if led.idle_start_time is not None:
                led.total_idle_time += _span(led.idle_start_time, now)
            # Absence is accounted as idle in the ledger.
            led.idle_start_time = now

    def _tick(self, status: Status, now: float) -> None:
        last = self.ledger.last_transition_time
        if last is None:
            elapsed = self.default_elapsed_ms
            self.buckets[hour_of(now, self.tz)].add(status, elapsed)
        else:
            elapsed = _span(last, now)
            self._attribute(status, last, now)
        self.buckets[hour_of(now, self.tz)].record_sample(now, status, elapsed)
        self.ledger.last_transition_time = now

    def _attribute(self, status: Status, start: float, end: float) -> None:
        """Add [start, end) to the hour buckets, split at local hour boundaries."""

        if end <= start:
            self.buckets[hour_of(end, self.tz)].add(status, 0.0)
            return
        cursor = start
        while cursor < end:
            chunk_end = min(next_hour_ms(cursor, self.tz), end)
            self.buckets[hour_of(cursor, self.tz)].add(status, chunk_end - cursor)
            cursor = chunk_end

    def _resolve_now(self, now_ms: float | None) -> float:
        if now_ms is not None:
            return float(now_ms)
        if self.ledger.last_transition_time is not None:
            return self.ledger.last_transition_time
        return self.origin

    def working_time(self, now_ms: float | None = None) -> float:
        """Total working time including the open interval, if any."""

        now = self._resolve_now(now_ms)
        led = self.ledger
        extra = _span(led.working_start_time, now) if led.working_start_time is not None else 0.0
        return led.total_working_time + extra

    def idle_time(self, now_ms: float | None = None) -> float:
        """Total idle time (absence included) including the open interval, if any."""

        now = self._resolve_now(now_ms)
        led = self.ledger
        extra = _span(led.idle_start_time, now) if led.idle_start_time is not None else 0.0
        return led.total_idle_time + extra

    def overall_productivity(self, now_ms: float | None = None) -> float:
        """Working share of ledger time, in percent."""

        return productivity_score(self.working_time(now_ms), self.idle_time(now_ms))

    def ledger_snapshot(self, now_ms: float | None = None) -> dict[str, Any]:
        led = self.ledger
        return {
            "totalWorkingTime": led.total_working_time,
            "totalIdleTime": led.total_idle_time,
            "workingStartTime": led.working_start_time,
            "idleStartTime": led.idle_start_time,
            "lastTransitionTime": led.last_transition_time,
            "workingTime": self.working_time(now_ms),
            "idleTime": self.idle_time(now_ms),
            "overallProductivity": self.overall_productivity(now_ms),
            "origin": self.origin,
            "status": self.status.value if self.status is not None else None,
        }

    def hourly_snapshot(self) -> dict[str, dict[str, Any]]:
        return {str(b.hour): b.to_dict() for b in self.buckets}

    def to_dict(self, now_ms: float | None = None) -> dict[str, Any]:
        return {"hourlyData": self.hourly_snapshot(), "ledger": self.ledger_snapshot(now_ms)}

    def restore(self, data: dict[str, Any], now_ms: float) -> None:
        """Load totals and buckets saved by `to_dict`.

        Time between the save and `now_ms` is not counted: the ledger reopens
        idle at `now_ms` and the origin is shifted so live totals stay
        conserved.
        """

        ledger = data.get("ledger") or {}
        working = float(ledger.get("workingTime", ledger.get("totalWorkingTime", 0.0)) or 0.0)
        idle = float(ledger.get("idleTime", ledger.get("totalIdleTime", 0.0)) or 0.0)
        now = float(now_ms)

        self.origin = now - (working + idle)
        self.ledger = TimeLedger(
            total_working_time=working,
            total_idle_time=idle,
            idle_start_time=now,
            last_transition_time=now,
        )
        self.status = None

        buckets = [HourBucket(hour=h) for h in range(HOURS)]
        for key, raw in (data.get("hourlyData") or {}).items():
            try:
                hour = int(key)
            except (TypeError, ValueError):
                continue
            if 0 <= hour < HOURS and isinstance(raw, dict):
                buckets[hour] = HourBucket.from_dict(hour, raw)
        self.buckets = buckets
