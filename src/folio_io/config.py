"""TOML configuration loading for the publish service."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from folio_schemas.config import ModelEndpointConfig, PublishConfig
from folio_schemas.primitives import JsonValue


class ConfigError(Exception):
    """Raised when the configuration file cannot be loaded."""


def load_config(config_path: Path) -> PublishConfig:
    """Load and validate a publish configuration file.

    A `.env` file next to the config is loaded first without overriding
    variables already present in the environment.

    Args:
        config_path: Path to the TOML configuration.

    Returns:
        PublishConfig: Validated configuration with its data directory resolved
        relative to the config file.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    load_env_file(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config not found: {config_path}")
    try:
        with open(config_path, "rb") as handle:
            payload: dict[str, JsonValue] = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to read config: {exc}") from exc
    try:
        config = PublishConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config: {exc}") from exc
    return _resolve_data_dir(config, config_path)


def load_env_file(config_path: Path) -> None:
    """Load the `.env` file that sits beside a config file, if any."""
    env_path = config_path.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)


def resolve_api_key(endpoint: ModelEndpointConfig) -> str:
    """Read the API key named by an endpoint from the environment.

    Returns:
        str: API key value.

    Raises:
        ConfigError: If the variable is unset or empty.
    """
    value = os.getenv(endpoint.api_key_env)
    if not value:
        raise ConfigError(
            f"Missing API key environment variable: {endpoint.api_key_env}"
        )
    return value


def _resolve_data_dir(config: PublishConfig, config_path: Path) -> PublishConfig:
    data_dir = Path(config.storage.data_dir)
    if data_dir.is_absolute():
        return config
    resolved = (config_path.parent / data_dir).resolve()
    storage = config.storage.model_copy(update={"data_dir": str(resolved)})
    return config.model_copy(update={"storage": storage})
