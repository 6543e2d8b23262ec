"""Clock and local-time helpers.

All timestamps in the monitor are float milliseconds since the epoch. Hours
and dates are derived in local time (or an explicit `tzinfo`, used by tests).
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, tzinfo
from typing import Protocol


class Clock(Protocol):
    """Time source consumed by the session."""

    def now_ms(self) -> float:
        """Return the current time in milliseconds."""


class SystemClock:
    """Wall-clock milliseconds that never step backwards.

    Hour buckets need wall-clock time, but the ledger must not see negative
    intervals when the system clock is adjusted; backward steps are held at
    the last returned value.
    """

    def __init__(self) -> None:
        self._last = 0.0

    def now_ms(self) -> float:
        now = time.time() * 1000.0
        if now < self._last:
            return self._last
        self._last = now
        return now


class ManualClock:
    """Clock advanced explicitly (offline replays and tests)."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)

    def now_ms(self) -> float:
        return self._now

    def set(self, now_ms: float) -> None:
        self._now = float(now_ms)

    def advance(self, delta_ms: float) -> float:
        self._now += float(delta_ms)
        return self._now


def to_datetime(ts_ms: float, tz: tzinfo | None = None) -> datetime:
    """Convert epoch milliseconds to an aware datetime (local time by default)."""

    if tz is None:
        return datetime.fromtimestamp(ts_ms / 1000.0).astimezone()
    return datetime.fromtimestamp(ts_ms / 1000.0, tz)


def hour_of(ts_ms: float, tz: tzinfo | None = None) -> int:
    """Return the local hour (0-23) for a timestamp."""

    return to_datetime(ts_ms, tz).hour


def day_of(ts_ms: float, tz: tzinfo | None = None) -> str:
    """Return the local calendar day as YYYY-MM-DD."""

    return to_datetime(ts_ms, tz).date().isoformat()


def next_hour_ms(ts_ms: float, tz: tzinfo | None = None) -> float:
    """Return the timestamp of the next local hour boundary after `ts_ms`."""

    dt = to_datetime(ts_ms, tz).replace(minute=0, second=0, microsecond=0)
    return (dt + timedelta(hours=1)).timestamp() * 1000.0


def hour_label(hour: int) -> str:
    """Format an hour as a 12-hour label, e.g. 9 -> "9 AM", 13 -> "1 PM"."""

    suffix = "AM" if hour < 12 else "PM"
    h12 = hour % 12
    return f"{12 if h12 == 0 else h12} {suffix}"


def format_duration(ms: float) -> str:
    """Compact duration: "1h 5m", "3m 12s" or "42s"."""

    total_seconds = int(max(0.0, ms) // 1000)
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def day_start_ms(ts_ms: float, tz: tzinfo | None = None) -> float:
    """Return the timestamp of local midnight starting the day of `ts_ms`."""

    dt = to_datetime(ts_ms, tz).replace(hour=0, minute=0, second=0, microsecond=0)
    return dt.timestamp() * 1000.0
