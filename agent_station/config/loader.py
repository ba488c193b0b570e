"""Load and save the agent-station config file."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from agent_station.config.schema import Config


def get_config_path() -> Path:
    """Return the default config file location."""
    return Path.home() / ".agent-station" / "config.json"


def load_config(path: Path | None = None) -> Config:
    """Load config from disk, falling back to defaults on a missing or broken file."""
    target = path or get_config_path()
    if not target.exists():
        return Config()

    try:
        payload = json.loads(target.read_text(encoding="utf-8"))
        return Config(**payload)
    except (OSError, TypeError, json.JSONDecodeError, ValidationError) as exc:
        logger.warning(f"[config] Failed to load {target}: {exc}. Using defaults.")
        return Config()


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write config to disk and return the path written."""
    target = path or get_config_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = config.model_dump(mode="json")
    target.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return target
