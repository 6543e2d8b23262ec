"""Monitor configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `DW_`.

Detection thresholds and the smoothing window are live tunables: operators
adjust them while monitoring runs, so out-of-range values are clamped rather
than rejected. Everything else is validated strictly.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from deskwatch.core.analytics.status import MAX_WINDOW, MIN_WINDOW

logger = logging.getLogger(__name__)

TUNABLE_FIELDS = (
    "person_confidence",
    "head_confidence",
    "head_match_iou",
    "status_window",
    "enable_alerts",
    "autosave",
)


def _clamp_unit(name: str, v: float) -> float:
    v = float(v)
    clamped = max(0.0, min(1.0, v))
    if clamped != v:
        logger.warning("%s=%s clamped to %s", name, v, clamped)
    return clamped


class MonitorSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `DW_` env overrides."""

    video_source: str = Field("webcam", description="webcam|file|rtsp")
    video_path: str | None = None
    rtsp_url: str | None = None
    camera_index: int = 0
    # Model trained with "person" and "head" classes.
    model_name: str = Field("models/person-head.pt")
    # Floor applied inside the detector; per-class thresholds filter afterwards.
    detector_confidence: float = 0.25
    person_confidence: float = 0.40
    head_confidence: float = 0.30
    head_match_iou: float = 0.1
    status_window: int = 30
    enable_alerts: bool = False
    # Optional cap for the processing loop FPS. 0 runs as fast as inference allows.
    target_fps: float = 0.0
    autosave: bool = True
    autosave_interval_s: float = 30.0
    data_dir: str = "data"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="DW_", validate_assignment=True)

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file", "rtsp"}:
            raise ValueError("video_source must be webcam|file|rtsp")
        return v

    @field_validator("detector_confidence")
    @classmethod
    def _validate_detector_confidence(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("detector_confidence must be in (0, 1]")
        return v

    @field_validator("person_confidence", "head_confidence", "head_match_iou")
    @classmethod
    def _clamp_thresholds(cls, v: float, info: Any) -> float:
        return _clamp_unit(info.field_name, v)

    @field_validator("status_window")
    @classmethod
    def _clamp_status_window(cls, v: int) -> int:
        clamped = max(MIN_WINDOW, min(MAX_WINDOW, int(v)))
        if clamped != v:
            logger.warning("status_window=%s clamped to %s", v, clamped)
        return clamped

    @field_validator("target_fps")
    @classmethod
    def _validate_target_fps(cls, v: float) -> float:
        if v < 0:
            raise ValueError("target_fps must be >= 0")
        return float(v)

    @field_validator("autosave_interval_s")
    @classmethod
    def _validate_autosave_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("autosave_interval_s must be > 0")
        return float(v)

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = str(v).strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("log_level must be DEBUG|INFO|WARNING|ERROR|CRITICAL")
        return level


def settings_to_dict(settings: MonitorSettings) -> dict[str, Any]:
    """Convert settings to a plain dict."""

    return settings.model_dump()


def tunables_from_settings(settings: MonitorSettings) -> dict[str, Any]:
    """Return the subset of settings that can change without restarting the engine."""

    return {name: getattr(settings, name) for name in TUNABLE_FIELDS}


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/monitor.config.yml)."""

    return Path(os.getenv("DW_CONFIG", "config/monitor.config.yml"))


def load_settings() -> MonitorSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = MonitorSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }

    merged = {**data, **env_overrides}
    return MonitorSettings(**merged)
