"""Health check, settings, API key, and preset endpoints."""

from fastapi import APIRouter, HTTPException

from backend import sessions
from velvet import config, presets

from .models import ApiKeyBody, UpdateSettings

router = APIRouter()


def _public_settings() -> dict:
    """Current settings without the key itself."""
    cfg = sessions.settings()
    data = cfg.model_dump(exclude={"api_key", "data_dir"})
    data["has_api_key"] = cfg.has_api_key
    return data


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok", "has_api_key": sessions.settings().has_api_key}


@router.get("/settings")
async def get_settings():
    """Get resolved settings (models, timeout, refinement policy)."""
    return _public_settings()


@router.patch("/settings")
async def update_settings(body: UpdateSettings):
    """Update locally stored settings (partial merge)."""
    config.update_config(sessions.settings().data_dir, body.model_dump(exclude_none=True))
    sessions.reload_settings()
    return _public_settings()


@router.put("/settings/api-key")
async def set_api_key(body: ApiKeyBody):
    """Store an API key locally. An environment key still takes precedence."""
    if not body.api_key.strip():
        raise HTTPException(422, "API key must not be blank")
    config.update_api_key(sessions.settings().data_dir, body.api_key)
    sessions.reload_settings()
    return _public_settings()


@router.delete("/settings/api-key")
async def clear_api_key():
    """Remove the locally stored API key."""
    config.clear_local_key(sessions.settings().data_dir)
    sessions.reload_settings()
    return _public_settings()


@router.get("/presets")
async def get_presets():
    """Preset visual mutations and copy tones."""
    return presets.as_dict()
