"""Hourly breakdown, insights and export endpoints."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from deskwatch.api.schemas.models import ExportSchema, HourSchema, InsightSchema
from deskwatch.api.services.engine import MonitorEngine
from deskwatch.api.services.state import get_engine
from deskwatch.core.analytics.insights import productivity_level
from deskwatch.core.timeutil import hour_label

router = APIRouter()


def _hour(data: dict[str, Any]) -> HourSchema:
    hour = int(data["hour"])
    score = float(data["productivityScore"])
    return HourSchema(
        hour=hour,
        label=hour_label(hour),
        working_time=data["workingTime"],
        idle_time=data["idleTime"],
        absent_time=data["absentTime"],
        status_changes=data["statusChanges"],
        productivity_score=score,
        level=productivity_level(score),
        samples=data.get("samples", []),
    )


@router.get("/hourly", response_model=list[HourSchema])
def hourly(engine: MonitorEngine = Depends(get_engine)) -> list[HourSchema]:
    """Return all 24 hour buckets for the current day."""

    return [_hour(b) for b in engine.pipeline.hourly()]


@router.get("/insights", response_model=InsightSchema)
def insights(engine: MonitorEngine = Depends(get_engine)) -> InsightSchema:
    """Return peak/idle hours and the current recommendation."""

    return InsightSchema(**asdict(engine.pipeline.insights()))


@router.get("/days", response_model=list[str])
def days(engine: MonitorEngine = Depends(get_engine)) -> list[str]:
    """List the days with data, oldest first."""

    return engine.days()


@router.get("/export", response_model=ExportSchema)
def export(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    engine: MonitorEngine = Depends(get_engine),
) -> ExportSchema:
    """Export the days in `[start, end]` (default: the current day) with a summary."""

    first = start.isoformat() if start else engine.day
    last = end.isoformat() if end else engine.day
    try:
        data = engine.export_range(first, last)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    return ExportSchema(**data)
