"""Stats endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from deskwatch.api.schemas.models import StatsSchema
from deskwatch.api.services.engine import MonitorEngine
from deskwatch.api.services.state import get_engine

router = APIRouter()


@router.get("/stats", response_model=StatsSchema)
def stats(engine: MonitorEngine = Depends(get_engine)) -> StatsSchema:
    """Return the current status and headline productivity figures."""

    return StatsSchema(**engine.stats())
