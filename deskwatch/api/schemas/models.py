"""Pydantic models for the HTTP/WS API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class StatsSchema(BaseModel):
    """Current status and headline metrics."""

    status: str | None
    frame_id: int = 0
    persons: int = 0
    heads: int = 0
    fps: float = 0.0
    working_time: float = 0.0
    idle_time: float = 0.0
    overall_productivity: float = 0.0
    recent_productivity: float = 0.0
    session_duration: float = 0.0
    paused: bool = False
    running: bool = False
    day: str | None = None
    last_saved: float | None = None
    status_since: float | None = None
    error: str | None = None


class SampleSchema(BaseModel):
    timestamp: float
    status: str
    duration: float


class HourSchema(BaseModel):
    """One hour bucket."""

    hour: int = Field(ge=0, le=23)
    label: str
    working_time: float
    idle_time: float
    absent_time: float
    status_changes: int
    productivity_score: float
    level: str
    samples: list[SampleSchema] = Field(default_factory=list)


class InsightSchema(BaseModel):
    """Derived daily insights."""

    peak_hour: int | None = None
    peak_score: float = 0.0
    idle_hour: int | None = None
    idle_time: float = 0.0
    recommendation_tier: str | None = None
    recommendation: str | None = None
    messages: list[str] = Field(default_factory=list)


class ExportSchema(BaseModel):
    """Structured snapshot for report generation.

    `hourlyData`, `ledger` and `sessionData` describe the current day;
    `dailyData` holds every day in the requested range.
    """

    day: str
    hourlyData: dict[str, dict[str, Any]]
    ledger: dict[str, Any]
    sessionData: dict[str, Any]
    metadata: dict[str, Any] = Field(default_factory=dict)
    summary: dict[str, Any] = Field(default_factory=dict)
    dailyData: dict[str, dict[str, Any]] = Field(default_factory=dict)


class ConfigSchema(BaseModel):
    """Runtime configuration payload."""

    video_source: str
    video_path: str | None = None
    rtsp_url: str | None = None
    camera_index: int = Field(default=0, ge=0)
    model_name: str
    detector_confidence: float = Field(default=0.25, gt=0.0, le=1.0)
    # Live tunables: clamped by the session, so no range constraints here.
    person_confidence: float = 0.40
    head_confidence: float = 0.30
    head_match_iou: float = 0.1
    status_window: int = 30
    enable_alerts: bool = False
    target_fps: float = Field(default=0.0, ge=0)
    autosave: bool = True
    autosave_interval_s: float = Field(default=30.0, gt=0)
    data_dir: str = "data"
    log_level: str = "INFO"

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file", "rtsp"}:
            raise ValueError("video_source must be webcam|file|rtsp")
        return v


class TunablesSchema(BaseModel):
    """Partial update of live tunables."""

    person_confidence: float | None = None
    head_confidence: float | None = None
    head_match_iou: float | None = None
    status_window: int | None = None
    enable_alerts: bool | None = None
    autosave: bool | None = None
