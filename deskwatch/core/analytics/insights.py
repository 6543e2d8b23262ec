"""Daily insights derived from the hour buckets and ledger totals."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from deskwatch.core.analytics.productivity import HourBucket
from deskwatch.core.timeutil import hour_label

MAX_INSIGHTS = 3

# (upper bound on working ratio, tier, advisory, tip)
TIERS: tuple[tuple[float, str, str, str], ...] = (
    (
        0.3,
        "low",
        "Focus needed - Consider scheduling breaks strategically",
        "Low productivity detected. Try the Pomodoro technique: 25 minutes work, 5 minutes break.",
    ),
    (
        0.6,
        "moderate",
        "Moderate productivity - Room for improvement",
        "Consider eliminating distractions during peak hours.",
    ),
    (
        float("inf"),
        "high",
        "Excellent productivity - Keep up the good work!",
        "Maintain current routine for optimal performance.",
    ),
)


@dataclass
class Insight:
    """Derived, ephemeral summary of the day so far."""

    peak_hour: int | None = None
    peak_score: float = 0.0
    idle_hour: int | None = None
    idle_time: float = 0.0
    recommendation_tier: str | None = None
    recommendation: str | None = None
    messages: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "peakHour": self.peak_hour,
            "peakScore": self.peak_score,
            "idleHour": self.idle_hour,
            "idleTime": self.idle_time,
            "recommendationTier": self.recommendation_tier,
            "recommendation": self.recommendation,
            "messages": list(self.messages),
        }


def recommendation_for(ratio: float) -> tuple[str, str, str]:
    """Return (tier, advisory, tip) for a working ratio in [0, 1]."""

    for bound, tier, advisory, tip in TIERS:
        if ratio < bound:
            return tier, advisory, tip
    _, tier, advisory, tip = TIERS[-1]
    return tier, advisory, tip


def productivity_level(score: float) -> str:
    """Classify an hourly productivity score for display."""

    if score >= 70:
        return "productive"
    if score >= 30:
        return "moderate"
    return "idle"


def generate_insights(
    buckets: Sequence[HourBucket],
    total_working_ms: float,
    total_idle_ms: float,
) -> Insight:
    """Derive peak/idle hours and a recommendation tier.

    Peak and idle hours pick the earliest hour attaining the maximum. With no
    ledger time at all there is nothing to recommend and the tier is None.
    """

    insight = Insight()

    for bucket in sorted(buckets, key=lambda b: b.hour):
        if bucket.productivity_score > insight.peak_score:
            insight.peak_score = bucket.productivity_score
            insight.peak_hour = bucket.hour
        if bucket.idle_time > insight.idle_time:
            insight.idle_time = bucket.idle_time
            insight.idle_hour = bucket.hour

    messages: list[str] = []
    if insight.peak_hour is not None:
        messages.append(
            f"Peak productivity at {hour_label(insight.peak_hour)} ({insight.peak_score:.1f}%)"
        )
    if insight.idle_hour is not None:
        messages.append(f"Most idle time at {hour_label(insight.idle_hour)}")

    total = total_working_ms + total_idle_ms
    if total > 0:
        tier, advisory, tip = recommendation_for(total_working_ms / total)
        insight.recommendation_tier = tier
        insight.recommendation = advisory
        messages.append(tip)

    insight.messages = messages[:MAX_INSIGHTS]
    return insight
