from datetime import datetime, timedelta, timezone

import pytest

from deskwatch.core import timeutil
from deskwatch.core.timeutil import (
    ManualClock,
    SystemClock,
    day_of,
    day_start_ms,
    format_duration,
    hour_label,
    hour_of,
    next_hour_ms,
)

UTC = timezone.utc


@pytest.mark.parametrize(
    "hour,label", [(0, "12 AM"), (1, "1 AM"), (11, "11 AM"), (12, "12 PM"), (13, "1 PM"), (23, "11 PM")]
)
def test_hour_label(hour, label):
    assert hour_label(hour) == label


def test_hour_and_day_in_explicit_zone():
    ts = datetime(2024, 5, 1, 23, 30, tzinfo=UTC).timestamp() * 1000
    assert hour_of(ts, UTC) == 23
    assert day_of(ts, UTC) == "2024-05-01"
    plus_two = timezone(timedelta(hours=2))
    assert hour_of(ts, plus_two) == 1
    assert day_of(ts, plus_two) == "2024-05-02"


def test_next_hour_boundary():
    ts = datetime(2024, 5, 1, 9, 59, 30, tzinfo=UTC).timestamp() * 1000
    assert next_hour_ms(ts, UTC) == datetime(2024, 5, 1, 10, tzinfo=UTC).timestamp() * 1000


def test_format_duration():
    assert format_duration(42_000) == "42s"
    assert format_duration(192_000) == "3m 12s"
    assert format_duration(3_900_000) == "1h 5m"
    assert format_duration(-5) == "0s"


def test_manual_clock():
    clock = ManualClock(100.0)
    assert clock.now_ms() == 100.0
    assert clock.advance(50) == 150.0
    clock.set(10.0)
    assert clock.now_ms() == 10.0


def test_system_clock_never_steps_backwards(monkeypatch: pytest.MonkeyPatch):
    times = iter([10.0, 5.0, 12.0])
    monkeypatch.setattr(timeutil.time, "time", lambda: next(times))
    clock = SystemClock()
    assert clock.now_ms() == 10_000.0
    assert clock.now_ms() == 10_000.0
    assert clock.now_ms() == 12_000.0


def test_day_start_is_local_midnight():
    ts = datetime(2024, 5, 1, 13, 45, 7, tzinfo=UTC).timestamp() * 1000.0
    assert day_start_ms(ts, UTC) == datetime(2024, 5, 1, tzinfo=UTC).timestamp() * 1000.0
    plus_two = timezone(timedelta(hours=2))
    late = datetime(2024, 5, 1, 23, 30, tzinfo=UTC).timestamp() * 1000.0
    assert day_start_ms(late, plus_two) == datetime(2024, 5, 1, 22, tzinfo=UTC).timestamp() * 1000.0
    assert day_start_ms(day_start_ms(ts, UTC), UTC) == day_start_ms(ts, UTC)
