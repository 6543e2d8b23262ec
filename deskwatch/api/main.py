"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deskwatch.api.routes import config, health, monitor, reports, stats, stream
from deskwatch.api.services.state import get_settings


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler.

    Configures logging on startup and stops the monitoring engine (which
    saves the day's data) on shutdown.
    """

    from deskwatch.api.services.state import stop_engine

    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    yield
    stop_engine()


app = FastAPI(title="DeskWatch API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(config.router)
app.include_router(stats.router)
app.include_router(reports.router)
app.include_router(monitor.router)
app.include_router(stream.router)


if __name__ == "__main__":
    uvicorn.run("deskwatch.api.main:app", host="0.0.0.0", port=8000, reload=True)
