"""In-process state for settings and the monitoring engine.

FastAPI routes use this module to access (and hot-reload) the process-wide
`MonitorEngine`. The engine's session itself is an ordinary object; this is
only the provider the HTTP layer depends on.
"""

from __future__ import annotations

from threading import RLock
from typing import Any

from deskwatch.api.services.engine import MonitorEngine
from deskwatch.core.config.settings import (
    TUNABLE_FIELDS,
    MonitorSettings,
    load_settings,
    settings_to_dict,
)

_settings: MonitorSettings | None = None
_engine: MonitorEngine | None = None
_lock = RLock()


def get_settings() -> MonitorSettings:
    """Return cached settings, loading them on first use."""

    global _settings
    with _lock:
        if _settings is None:
            _settings = load_settings()
    return _settings


def update_settings(data: dict[str, Any]) -> MonitorSettings:
    """Apply a settings patch.

    Patches that only touch live tunables are applied to the running session
    in place. Anything else rebuilds settings and restarts the engine.
    """

    global _settings, _engine
    with _lock:
        current = get_settings()
        changed = {k: v for k, v in data.items() if getattr(current, k, None) != v}
        if not changed:
            return current
        if set(changed) <= set(TUNABLE_FIELDS):
            if _engine is not None:
                _settings = _engine.apply_tunables(changed)
            else:
                _settings = MonitorSettings(**{**settings_to_dict(current), **changed})
            return _settings
    return reload_settings(data)


def reload_settings(data: dict | None = None) -> MonitorSettings:
    """Reload settings and restart the engine if it is running.

    Args:
        data: Optional patch dict merged into the loaded settings.
    """

    global _settings, _engine
    with _lock:
        base = load_settings()
        if data:
            _settings = MonitorSettings(**{**settings_to_dict(base), **data})
        else:
            _settings = base
        if _engine:
            _engine.stop()
            _engine = MonitorEngine(_settings)
            _engine.start()
    return _settings


def get_engine() -> MonitorEngine:
    """Return the process engine instance, creating and starting it if needed."""

    global _engine
    with _lock:
        if _engine is None:
            _engine = MonitorEngine(get_settings())
            _engine.start()
    return _engine


def stop_engine() -> None:
    """Stop and discard the engine instance (if present)."""

    global _engine
    with _lock:
        if _engine is not None:
            _engine.stop()
            _engine = None
