"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers win):

    1. ``config/config.yaml`` -- static store defaults checked into a project
    2. ``.env`` file          -- local developer overrides
    3. Environment variables  -- deployment-time values

Only keys present in the YAML ``store:`` section or set explicitly in the
environment override the :class:`StoreConfig` defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic
import yaml

from embedstore.config.settings import Settings
from embedstore.models.config import StoreConfig
from embedstore.utils.errors import ConfigurationError

# Settings field -> StoreConfig field.
_SETTINGS_TO_STORE: dict[str, str] = {
    "openai_embedding_model": "embedding_model",
    "embedding_batch_size": "batch_size",
    "embedding_batch_delay_ms": "batch_delay_ms",
    "embedding_timeout_s": "embedding_timeout_s",
    "embedding_max_retries": "max_retries",
    "embedding_retry_backoff_s": "retry_backoff_s",
    "expected_dimension": "expected_dimension",
}


def load_config(
    path: str = "config/config.yaml",
    settings: Settings | None = None,
) -> StoreConfig:
    """Build a :class:`StoreConfig` from YAML defaults plus environment overrides.

    Args:
        path: Path to the YAML file.  A missing file is not an error.
        settings: Pre-built settings; a fresh ``Settings()`` is read if omitted.

    Returns:
        A validated store configuration.

    Raises:
        ConfigurationError: If the YAML is malformed or a value is invalid.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            try:
                yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
    else:
        yaml_config = {}

    if not isinstance(yaml_config, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")

    settings = settings or Settings()
    env_overrides = {"store": _env_store_overrides(settings)}

    merged: dict[str, Any] = {"store": dict(yaml_config.get("store") or {})}
    _deep_merge(merged, env_overrides)

    store_values = merged["store"]
    # 0 is the "not set" sentinel for the env/YAML value.
    if not store_values.get("expected_dimension"):
        store_values["expected_dimension"] = None

    try:
        return StoreConfig(**store_values)
    except pydantic.ValidationError as exc:
        raise ConfigurationError(f"Invalid store configuration: {exc}") from exc


def _env_store_overrides(settings: Settings) -> dict[str, Any]:
    """Return only the store values that were explicitly set via env / .env."""
    explicitly_set = settings.model_fields_set
    return {
        store_key: getattr(settings, settings_key)
        for settings_key, store_key in _SETTINGS_TO_STORE.items()
        if settings_key in explicitly_set
    }


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge *overrides* into *base* in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
