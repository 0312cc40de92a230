"""Engine configuration (event simulation, starting gauges, content backend).

Values come from three layers, later ones winning:
  1. the defaults in _CONFIG_DEFAULTS
  2. a JSON file (usually {data_dir}/config.json)
  3. HAUNTED_* environment variables, loaded from .env by python-dotenv
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

_CONFIG_DEFAULTS: dict[str, Any] = {
    "enable_stochastic_events": True,
    "stochastic_probability": 0.3,
    "cascade_threshold": 0.7,
    "max_cascade_depth": 3,
    "history_limit": 100,
    "starting_stability": 60,
    "starting_insight": 10,
    "starting_room": "boot_sector",
    "terminal_room": "final_merge",
    "default_skill_level": 50,
    "seed": None,
    "content_url": "",
    "content_api_key": "",
    "content_format": "koboldcpp",
    "content_model": "",
    "content_timeout": 30.0,
    "lint_ruleset": ["no-eval", "no-unsafe-inline", "no-dangerous-functions"],
}

# env var -> config key
_ENV_OVERRIDES: dict[str, str] = {
    "HAUNTED_SEED": "seed",
    "HAUNTED_CONTENT_URL": "content_url",
    "HAUNTED_CONTENT_API_KEY": "content_api_key",
    "HAUNTED_CONTENT_FORMAT": "content_format",
    "HAUNTED_CONTENT_MODEL": "content_model",
    "HAUNTED_STOCHASTIC_EVENTS": "enable_stochastic_events",
}


class EngineConfig(BaseModel):
    enable_stochastic_events: bool = _CONFIG_DEFAULTS["enable_stochastic_events"]
    stochastic_probability: float = Field(default=_CONFIG_DEFAULTS["stochastic_probability"], ge=0.0, le=1.0)
    cascade_threshold: float = Field(default=_CONFIG_DEFAULTS["cascade_threshold"], ge=0.0, le=1.0)
    max_cascade_depth: int = Field(default=_CONFIG_DEFAULTS["max_cascade_depth"], ge=0)
    history_limit: int = Field(default=_CONFIG_DEFAULTS["history_limit"], ge=1)
    starting_stability: int = Field(default=_CONFIG_DEFAULTS["starting_stability"], ge=0, le=100)
    starting_insight: int = Field(default=_CONFIG_DEFAULTS["starting_insight"], ge=0, le=100)
    starting_room: str = _CONFIG_DEFAULTS["starting_room"]
    terminal_room: str = _CONFIG_DEFAULTS["terminal_room"]
    default_skill_level: int = Field(default=_CONFIG_DEFAULTS["default_skill_level"], ge=0, le=100)
    seed: int | None = _CONFIG_DEFAULTS["seed"]
    content_url: str = _CONFIG_DEFAULTS["content_url"]
    content_api_key: str = _CONFIG_DEFAULTS["content_api_key"]
    content_format: Literal["koboldcpp", "openai"] = _CONFIG_DEFAULTS["content_format"]
    content_model: str = _CONFIG_DEFAULTS["content_model"]
    content_timeout: float = _CONFIG_DEFAULTS["content_timeout"]
    lint_ruleset: list[str] = Field(default_factory=lambda: list(_CONFIG_DEFAULTS["lint_ruleset"]))


def load_config(path: Path | None = None, *, env: bool = True) -> EngineConfig:
    """Read config, returning defaults merged with stored values and env overrides."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    if path is not None and path.is_file():
        stored = json.loads(path.read_text())
        for key, value in stored.items():
            if key in config:
                config[key] = value
    if env:
        load_dotenv()
        for var, key in _ENV_OVERRIDES.items():
            value = os.getenv(var)
            if value:
                config[key] = value
    return EngineConfig.model_validate(config)


def save_config(config: EngineConfig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config.model_dump_json(indent=2))


def update_config(path: Path, fields: dict[str, Any]) -> EngineConfig:
    """Merge fields into the stored config and persist. Returns the full config."""
    current = load_config(path, env=False).model_dump()
    for key, value in fields.items():
        if key in current:
            current[key] = value
    config = EngineConfig.model_validate(current)
    save_config(config, path)
    return config
