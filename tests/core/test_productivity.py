import random
from datetime import datetime, timezone

import pytest

from deskwatch.core.analytics.productivity import (
    DEFAULT_ELAPSED_MS,
    SAMPLE_LOG_CAPACITY,
    HourBucket,
    ProductivityAccumulator,
    productivity_score,
)
from deskwatch.core.types import Status

UTC = timezone.utc
W, I, A = Status.WORKING, Status.IDLE, Status.ABSENT


def _ms(hour: int, minute: int = 0, second: int = 0) -> float:
    return datetime(2024, 5, 1, hour, minute, second, tzinfo=UTC).timestamp() * 1000.0


def _open_intervals(acc: ProductivityAccumulator) -> int:
    led = acc.ledger
    return int(led.working_start_time is not None) + int(led.idle_start_time is not None)


def test_ledger_starts_idle_at_origin():
    acc = ProductivityAccumulator(1000.0, tz=UTC)
    assert acc.ledger.idle_start_time == 1000.0
    assert acc.ledger.working_start_time is None
    assert acc.idle_time(4000.0) == 3000.0
    assert acc.working_time(4000.0) == 0.0


def test_working_then_absent_transitions():
    acc = ProductivityAccumulator(0.0, tz=UTC)
    acc.update(W, 5000.0)
    acc.update(A, 15000.0)
    assert acc.ledger.total_working_time == 10000.0
    assert acc.ledger.total_idle_time == 5000.0
    assert acc.ledger.idle_start_time == 15000.0
    assert acc.ledger.working_start_time is None


def test_hour_bucket_score():
    bucket = HourBucket(hour=9)
    bucket.add(W, 1_800_000)
    bucket.add(I, 600_000)
    assert bucket.absent_time == 0
    assert bucket.productivity_score == pytest.approx(75.0)


def test_productivity_score_empty_is_zero():
    assert productivity_score(0, 0, 0) == 0.0
    assert HourBucket(hour=0).productivity_score == 0.0


def test_first_update_uses_default_elapsed():
    acc = ProductivityAccumulator(_ms(9), tz=UTC)
    acc.update(W, _ms(9, 0, 5))
    assert acc.buckets[9].working_time == DEFAULT_ELAPSED_MS
    assert acc.buckets[9].status_changes == 0
    (sample,) = acc.buckets[9].samples
    assert sample.duration == DEFAULT_ELAPSED_MS


def test_elapsed_time_goes_to_the_current_status():
    acc = ProductivityAccumulator(_ms(9), tz=UTC)
    acc.update(W, _ms(9))
    acc.update(W, _ms(9, 0, 10))
    acc.update(I, _ms(9, 0, 15))
    acc.update(A, _ms(9, 0, 25))
    b = acc.buckets[9]
    assert b.working_time == DEFAULT_ELAPSED_MS + 10_000
    assert b.idle_time == 5_000
    assert b.absent_time == 10_000
    assert b.status_changes == 2


def test_intervals_split_at_hour_boundaries():
    acc = ProductivityAccumulator(_ms(9, 59, 30), tz=UTC)
    acc.update(W, _ms(9, 59, 30))
    acc.update(W, _ms(10, 0, 30))
    assert acc.buckets[9].working_time == DEFAULT_ELAPSED_MS + 30_000
    assert acc.buckets[10].working_time == 30_000


def test_status_change_counted_in_hour_of_transition():
    acc = ProductivityAccumulator(_ms(13), tz=UTC)
    acc.update(W, _ms(13))
    acc.update(I, _ms(14, 5))
    assert acc.buckets[13].status_changes == 0
    assert acc.buckets[14].status_changes == 1


def test_non_monotonic_timestamp_adds_nothing():
    acc = ProductivityAccumulator(_ms(9), tz=UTC)
    acc.update(W, _ms(9, 0, 10))
    before = acc.buckets[9].working_time
    acc.update(W, _ms(9, 0, 5))
    assert acc.buckets[9].working_time == before


def test_sample_log_is_capped():
    acc = ProductivityAccumulator(_ms(9), tz=UTC)
    for i in range(SAMPLE_LOG_CAPACITY + 20):
        acc.update(W, _ms(9) + i * 100.0)
    samples = acc.buckets[9].samples
    assert len(samples) == SAMPLE_LOG_CAPACITY
    assert samples[-1].timestamp == _ms(9) + (SAMPLE_LOG_CAPACITY + 19) * 100.0


def test_time_is_conserved_and_one_interval_is_open():
    rng = random.Random(3)
    origin = _ms(8)
    acc = ProductivityAccumulator(origin, tz=UTC)
    now = origin
    for _ in range(500):
        now += rng.uniform(10, 120_000)
        acc.update(rng.choice([W, I, A]), now)
        assert _open_intervals(acc) == 1
        total = acc.working_time(now) + acc.idle_time(now)
        assert total == pytest.approx(now - origin)
        assert acc.ledger.total_working_time >= 0
        assert acc.ledger.total_idle_time >= 0


def test_overall_productivity():
    acc = ProductivityAccumulator(0.0, tz=UTC)
    acc.update(W, 0.0)
    acc.update(I, 3000.0)
    assert acc.overall_productivity(4000.0) == pytest.approx(75.0)


def test_snapshot_uses_camel_case_keys():
    acc = ProductivityAccumulator(_ms(9), tz=UTC)
    acc.update(W, _ms(9, 0, 1))
    snap = acc.to_dict()
    assert set(snap) == {"hourlyData", "ledger"}
    assert set(snap["hourlyData"]) == {str(h) for h in range(24)}
    assert snap["hourlyData"]["9"]["workingTime"] == DEFAULT_ELAPSED_MS
    assert snap["ledger"]["status"] == "WORKING"


def test_restore_conserves_totals_and_buckets():
    acc = ProductivityAccumulator(_ms(9), tz=UTC)
    acc.update(W, _ms(9))
    acc.update(I, _ms(9, 20))
    acc.update(W, _ms(9, 30))
    data = acc.to_dict(_ms(9, 45))

    restored = ProductivityAccumulator(_ms(11), tz=UTC)
    restored.restore(data, _ms(11))
    assert restored.working_time(_ms(11)) == pytest.approx(acc.working_time(_ms(9, 45)))
    assert restored.idle_time(_ms(11)) == pytest.approx(acc.idle_time(_ms(9, 45)))
    assert restored.buckets[9].working_time == acc.buckets[9].working_time
    assert restored.buckets[9].status_changes == acc.buckets[9].status_changes
    assert len(restored.buckets[9].samples) == len(acc.buckets[9].samples)

    # The gap between save and restore is not counted.
    later = _ms(11, 0, 10)
    restored.update(W, later)
    total = restored.working_time(later) + restored.idle_time(later)
    assert total == pytest.approx(later - restored.origin)


def test_restore_ignores_bad_hour_keys():
    acc = ProductivityAccumulator(0.0, tz=UTC)
    acc.restore({"hourlyData": {"x": {}, "99": {}, "3": {"workingTime": 5.0}}, "ledger": {}}, 100.0)
    assert acc.buckets[3].working_time == 5.0
    assert acc.working_time(100.0) == 0.0


def test_reset_clears_everything():
    acc = ProductivityAccumulator(_ms(9), tz=UTC)
    acc.update(W, _ms(9, 10))
    acc.reset(_ms(10))
    assert acc.origin == _ms(10)
    assert acc.status is None
    assert all(b.total_time == 0 for b in acc.buckets)
    assert acc.working_time(_ms(10, 1)) == 0.0


def test_close_day_fills_up_to_the_boundary():
    acc = ProductivityAccumulator(_ms(9), tz=UTC)
    acc.update(W, _ms(9, 50))
    acc.close_day(_ms(10))
    assert acc.buckets[9].working_time == pytest.approx(DEFAULT_ELAPSED_MS + 600_000.0)
    assert len(acc.buckets[9].samples) == 1
    assert acc.working_time() == pytest.approx(600_000.0)
    assert acc.working_time() + acc.idle_time() == pytest.approx(_ms(10) - _ms(9))

    # An earlier boundary changes nothing.
    acc.close_day(_ms(9, 55))
    assert acc.ledger.last_transition_time == _ms(10)
    assert acc.buckets[9].working_time == pytest.approx(DEFAULT_ELAPSED_MS + 600_000.0)


def test_reset_with_status_continues_it():
    acc = ProductivityAccumulator(_ms(9), tz=UTC)
    acc.update(W, _ms(9, 50))
    acc.reset(_ms(10), status=W)
    assert acc.origin == _ms(10)
    assert acc.status is W
    assert _open_intervals(acc) == 1
    assert acc.working_time() == 0.0

    assert acc.update(W, _ms(10, 5)) is False
    assert acc.buckets[10].working_time == pytest.approx(300_000.0)
    assert acc.buckets[10].status_changes == 0
    assert acc.working_time() == pytest.approx(300_000.0)
    assert acc.working_time() + acc.idle_time() == pytest.approx(_ms(10, 5) - _ms(10))
