"""App configuration: environment, locally stored settings, and the client factory.

Resolution order for every setting: environment variable, then the value
stored in {data_dir}/config.json, then the built-in default. The API key
additionally accepts API_KEY_B64 (a base64-encoded key) from the environment.

get_config() returns defaults merged with stored values.
update_config() applies partial updates; unknown keys are ignored.
"""

import base64
import binascii
import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from velvet.llm import (
    DEFAULT_BASE_URL,
    DEFAULT_FAST_MODEL,
    DEFAULT_IMAGE_MODEL,
    DEFAULT_TEXT_MODEL,
    GeminiClient,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path("data")

_CONFIG_DEFAULTS: dict[str, Any] = {
    "api_key": "",
    "base_url": DEFAULT_BASE_URL,
    "text_model": DEFAULT_TEXT_MODEL,
    "image_model": DEFAULT_IMAGE_MODEL,
    "fast_model": DEFAULT_FAST_MODEL,
    "call_timeout": 120.0,
    "refine_passes": 1,
    "reverify_refinements": False,
}

_ENV_NAMES: dict[str, str] = {
    "base_url": "GEMINI_BASE_URL",
    "text_model": "VELVET_TEXT_MODEL",
    "image_model": "VELVET_IMAGE_MODEL",
    "fast_model": "VELVET_FAST_MODEL",
    "call_timeout": "VELVET_CALL_TIMEOUT",
    "refine_passes": "VELVET_REFINE_PASSES",
    "reverify_refinements": "VELVET_REVERIFY",
}


class Settings(BaseModel):
    """Resolved runtime settings."""

    data_dir: Path
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    text_model: str = DEFAULT_TEXT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    fast_model: str = DEFAULT_FAST_MODEL
    call_timeout: float = Field(default=120.0, gt=0)
    refine_passes: int = Field(default=1, ge=1)
    reverify_refinements: bool = False

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = dict(_CONFIG_DEFAULTS)
    path = _config_path(data_dir)
    if path.is_file():
        stored = json.loads(path.read_text())
        for key, value in stored.items():
            if key in config:
                config[key] = value
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config(data_dir)
    for key, value in fields.items():
        if key in config:
            config[key] = value
    data_dir.mkdir(parents=True, exist_ok=True)
    _config_path(data_dir).write_text(json.dumps(config, indent=2))
    return config


def update_api_key(data_dir: Path, key: str) -> None:
    """Store an API key locally. Blank keys are ignored."""
    if not key.strip():
        return
    update_config(data_dir, {"api_key": key.strip()})


def clear_local_key(data_dir: Path) -> None:
    update_config(data_dir, {"api_key": ""})


def env_api_key() -> str:
    """API key from the environment: GEMINI_API_KEY, else base64 API_KEY_B64."""
    key = os.getenv("GEMINI_API_KEY", "")
    if key:
        return key
    encoded = os.getenv("API_KEY_B64", "")
    if encoded:
        try:
            return base64.b64decode(encoded, validate=True).decode("utf-8").strip()
        except (binascii.Error, UnicodeDecodeError):
            logger.error("API_KEY_B64 is set but is not valid base64")
    return ""


def load_settings(data_dir: Path | None = None) -> Settings:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    values = get_config(resolved)
    for key, env_name in _ENV_NAMES.items():
        raw = os.getenv(env_name)
        if raw:
            values[key] = raw
    if isinstance(values["reverify_refinements"], str):
        values["reverify_refinements"] = values["reverify_refinements"].lower() in ("1", "true", "yes")
    values["api_key"] = env_api_key() or values["api_key"]
    return Settings(data_dir=resolved, **values)


def build_client(settings: Settings) -> GeminiClient:
    return GeminiClient(
        api_key=settings.api_key,
        base_url=settings.base_url,
        text_model=settings.text_model,
        image_model=settings.image_model,
        fast_model=settings.fast_model,
        timeout=settings.call_timeout,
    )
