"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Layers (later layers override earlier):
#
#   1. Settings defaults
#   2. config/config.yaml -- static defaults checked into a deployment
#   3. .env file / environment variables
#
# The YAML file may group keys in sections for readability; sections are
# flattened before being handed to Settings:
#
#   pipeline:
#     check_validation: true      ->  check_validation=True
#   ollama:
#     base_url: http://gpu:11434  ->  ollama_base_url="http://gpu:11434"
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from semantic_archive.config.settings import Settings
from semantic_archive.utils.errors import ConfigurationError


def load_settings(path: str | Path | None = "config/config.yaml") -> Settings:
    """Build the process-wide :class:`Settings` from YAML plus environment.

    Args:
        path: Path to the YAML configuration file.  A missing file is not
              an error; the environment and defaults are used alone.

    Returns:
        Fully resolved settings.

    Raises:
        ConfigurationError: If the YAML is malformed or a value is invalid.
    """
    yaml_values: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            try:
                with open(config_path, encoding="utf-8") as f:
                    raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
            if not isinstance(raw, dict):
                raise ConfigurationError(f"Top level of {config_path} must be a mapping")
            yaml_values = _flatten(raw)

    # Init kwargs outrank the environment in pydantic-settings, so drop
    # YAML keys that the environment already sets.
    env_prefix = Settings.model_config.get("env_prefix", "")
    overrides = {
        key: value
        for key, value in yaml_values.items()
        if f"{env_prefix}{key}".upper() not in os.environ
    }
    try:
        return Settings(**overrides)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def _flatten(raw: dict[str, Any]) -> dict[str, Any]:
    """Flatten one level of YAML sections into Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, dict):
            for inner_key, inner_value in value.items():
                prefixed = f"{key}_{inner_key}"
                name = prefixed if prefixed in Settings.model_fields else inner_key
                flat[name] = inner_value
        else:
            flat[key] = value
    return flat
