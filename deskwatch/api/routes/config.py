"""Configuration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from deskwatch.api.schemas.models import ConfigSchema, TunablesSchema
from deskwatch.api.services.state import get_settings, update_settings
from deskwatch.core.config.presets import list_presets, preset_patch
from deskwatch.core.config.settings import settings_to_dict

router = APIRouter()


@router.get("/config", response_model=ConfigSchema)
def get_config() -> ConfigSchema:
    """Return the current effective monitor configuration."""

    settings = get_settings()
    return ConfigSchema(**settings_to_dict(settings))


@router.get("/config/presets")
def get_presets() -> dict[str, list[dict[str, object]]]:
    """Return available sensitivity presets."""

    return {"presets": list_presets()}


@router.post("/config/presets/{preset_id}", response_model=ConfigSchema)
def apply_preset(preset_id: str) -> ConfigSchema:
    """Apply a preset by id and return the updated configuration."""

    try:
        patch = preset_patch(preset_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Unknown preset") from None
    settings = update_settings(patch)
    return ConfigSchema(**settings_to_dict(settings))


@router.post("/config/tunables", response_model=ConfigSchema)
def update_tunables(patch: TunablesSchema) -> ConfigSchema:
    """Adjust live thresholds without restarting capture."""

    settings = update_settings(patch.model_dump(exclude_none=True))
    return ConfigSchema(**settings_to_dict(settings))


@router.post("/config", response_model=ConfigSchema)
def update_config(cfg: ConfigSchema) -> ConfigSchema:
    """Update in-memory settings.

    Tunable-only changes apply to the running session; anything else restarts
    the engine. Persist configuration via environment variables or the YAML
    config file.
    """

    settings = update_settings(cfg.model_dump())
    return ConfigSchema(**settings_to_dict(settings))
