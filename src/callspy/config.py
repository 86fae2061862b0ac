"""Configuration loading from files and environment variables."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".callspy"
CONFIG_FILE_NAMES = ("config.toml", "config.yaml", "config.yml")

DEFAULT_MAX_RECORDED_CALLS = 1000

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(slots=True)
class SpyConfig:
    """Spy settings with sensible defaults."""

    record_calls: bool = True
    max_recorded_calls: int | None = DEFAULT_MAX_RECORDED_CALLS  # None keeps every call

    @classmethod
    def load(cls) -> SpyConfig:
        """Load config from files and environment variables.

        Priority (highest to lowest):
        1. Environment variables (CALLSPY_*)
        2. Project config (.callspy/config.toml or .callspy/config.yaml)
        3. Global config (~/.callspy/config.toml or ~/.callspy/config.yaml)
        4. Defaults

        A ``max_recorded_calls`` of 0 lifts the cap on call history.
        """
        config_data: dict[str, Any] = {}

        # Settings are flat, so a later file simply overrides keys
        for config_dir in (Path.home() / CONFIG_DIR_NAME, Path.cwd() / CONFIG_DIR_NAME):
            config_data.update(cls._load_config_file(config_dir))

        config_data = cls._apply_env_vars(config_data)

        return cls._from_dict(config_data)

    @classmethod
    def _load_config_file(cls, config_dir: Path) -> dict[str, Any]:
        """Load the first config file found in a directory (TOML or YAML)."""
        for file_name in CONFIG_FILE_NAMES:
            path = config_dir / file_name
            if not path.exists():
                continue
            if path.suffix == ".toml":
                with open(path, "rb") as f:
                    data = tomllib.load(f)
            else:
                with open(path) as f:
                    data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                logger.warning("ignoring %s: expected a mapping, got %s", path, type(data).__name__)
                return {}
            logger.debug("loaded spy settings from %s", path)
            return data

        return {}

    @classmethod
    def _apply_env_vars(cls, config_data: dict[str, Any]) -> dict[str, Any]:
        """Apply CALLSPY_* environment variables."""
        env_mappings = {
            "CALLSPY_RECORD_CALLS": "record_calls",
            "CALLSPY_MAX_RECORDED_CALLS": "max_recorded_calls",
        }

        for env_var, config_key in env_mappings.items():
            if value := os.environ.get(env_var):
                config_data[config_key] = value

        return config_data

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> SpyConfig:
        """Create SpyConfig from dictionary."""
        record_calls = _parse_bool(data.get("record_calls", True))
        if record_calls is None:
            logger.warning("ignoring invalid record_calls=%r", data.get("record_calls"))
            record_calls = True

        max_recorded_calls = _parse_cap(data.get("max_recorded_calls", DEFAULT_MAX_RECORDED_CALLS))
        if max_recorded_calls == -1:
            logger.warning("ignoring invalid max_recorded_calls=%r", data.get("max_recorded_calls"))
            max_recorded_calls = DEFAULT_MAX_RECORDED_CALLS

        return cls(record_calls=record_calls, max_recorded_calls=max_recorded_calls)


def _parse_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


def _parse_cap(value: Any) -> int | None:
    """Parse a history cap: 0 or None means unbounded, -1 flags an invalid value."""
    if value is None:
        return None
    if isinstance(value, bool):
        return -1
    try:
        cap = int(value)
    except (TypeError, ValueError):
        return -1
    if cap < 0:
        return -1
    return cap or None
