"""Pause/resume and session log endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from deskwatch.api.schemas.models import StatsSchema
from deskwatch.api.services.engine import MonitorEngine
from deskwatch.api.services.state import get_engine

router = APIRouter(prefix="/monitor", tags=["monitor"])


@router.post("/pause", response_model=StatsSchema)
def pause(engine: MonitorEngine = Depends(get_engine)) -> StatsSchema:
    """Stop processing frames. Accumulated time is kept as of the last frame."""

    engine.pause()
    return StatsSchema(**engine.stats())


@router.post("/resume", response_model=StatsSchema)
def resume(engine: MonitorEngine = Depends(get_engine)) -> StatsSchema:
    engine.resume()
    return StatsSchema(**engine.stats())


@router.post("/clear-log", response_model=StatsSchema)
def clear_log(engine: MonitorEngine = Depends(get_engine)) -> StatsSchema:
    """Empty the session event log. Accumulated time is untouched."""

    engine.clear_log()
    return StatsSchema(**engine.stats())


@router.get("/log")
def log(engine: MonitorEngine = Depends(get_engine)) -> list[dict[str, Any]]:
    return engine.pipeline.export_snapshot()["sessionData"].get("statusChanges", [])
