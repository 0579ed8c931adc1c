"""Keeper configuration (LLM connection, language, prompt fragments).

Settings live in a single JSON file. load_config() returns defaults merged
with stored values, then applies environment overrides so a key kept in
.env never has to be written to disk.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from arkham_keeper.models import KeeperLanguage

# Environment variable -> LLMSettings field
_ENV_OVERRIDES: dict[str, str] = {
    "KEEPER_API_KEY": "api_key",
    "KEEPER_BASE_URL": "base_url",
    "KEEPER_MODEL": "model",
}


class LLMSettings(BaseModel):
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    api_key: str | None = None
    temperature: float | None = 0.7
    top_p: float | None = 0.9
    timeout: float | None = None  # seconds; None waits forever


class KeeperSettings(BaseModel):
    language: KeeperLanguage = "en"
    llm: LLMSettings = Field(default_factory=LLMSettings)
    keeper_system_prompt: str | None = None
    keeper_cycle_rules: str | None = None
    keeper_reply_format: str | None = None
    history_limit: int | None = None  # None sends the whole chat


def _read_stored(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    return json.loads(path.read_text(encoding="utf-8"))


def _merge(config: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    """llm is merged key by key, everything else is overwritten."""
    for key, value in fields.items():
        if key == "llm" and isinstance(value, dict):
            config["llm"].update(value)
        else:
            config[key] = value
    return config


def load_config(path: Path) -> KeeperSettings:
    """Read settings, returning defaults merged with stored values and env overrides."""
    config = _merge(KeeperSettings().model_dump(), _read_stored(path))
    for env_name, field in _ENV_OVERRIDES.items():
        value = os.getenv(env_name, "")
        if value:
            config["llm"][field] = value
    return KeeperSettings.model_validate(config)


def save_config(path: Path, fields: dict[str, Any]) -> KeeperSettings:
    """Merge fields into the stored settings and persist. Returns effective settings."""
    stored = _merge(KeeperSettings().model_dump(), _read_stored(path))
    updated = KeeperSettings.model_validate(_merge(stored, fields))
    path.write_text(updated.model_dump_json(indent=2), encoding="utf-8")
    return load_config(path)
