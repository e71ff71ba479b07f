"""Unit tests for configuration loading."""

import textwrap
from pathlib import Path

import pytest

from folio_io.config import ConfigError, load_config, resolve_api_key
from folio_schemas.config import ModelEndpointConfig


def _write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "folio.toml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


def test_load_config_resolves_relative_data_dir(tmp_path: Path) -> None:
    """Ensure relative data directories resolve beside the config file."""
    path = _write_config(
        tmp_path,
        """
        [languages]
        supported_languages = ["en", "fr", "es"]

        [concurrency]
        max_parallel_translations = 4

        [storage]
        data_dir = "state"

        [endpoint]
        base_url = "http://localhost:8080"
        api_key_env = "FOLIO_TEST_KEY"
        model_id = "test-model"
        """,
    )

    config = load_config(path)

    assert config.languages.resolve_languages() == ["en", "fr", "es"]
    assert config.concurrency.max_parallel_translations == 4
    assert config.storage.data_dir == str((tmp_path / "state").resolve())
    assert config.endpoint is not None
    assert config.endpoint.base_url == "http://localhost:8080/v1"


def test_load_config_missing_file(tmp_path: Path) -> None:
    """Ensure a missing config raises a config error."""
    with pytest.raises(ConfigError, match="Config not found"):
        load_config(tmp_path / "absent.toml")


def test_load_config_rejects_invalid_toml(tmp_path: Path) -> None:
    """Ensure malformed TOML raises a config error."""
    path = _write_config(tmp_path, "[languages\n")

    with pytest.raises(ConfigError, match="Failed to read config"):
        load_config(path)


def test_load_config_rejects_invalid_values(tmp_path: Path) -> None:
    """Ensure schema violations raise a config error."""
    path = _write_config(
        tmp_path,
        """
        [concurrency]
        max_parallel_translations = 0
        """,
    )

    with pytest.raises(ConfigError, match="Invalid config"):
        load_config(path)


def test_load_config_reads_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Ensure a .env file beside the config populates missing variables."""
    monkeypatch.delenv("FOLIO_DOTENV_KEY", raising=False)
    (tmp_path / ".env").write_text("FOLIO_DOTENV_KEY=from-dotenv\n", encoding="utf-8")
    path = _write_config(
        tmp_path,
        """
        [endpoint]
        base_url = "https://api.example.com/v1"
        api_key_env = "FOLIO_DOTENV_KEY"
        model_id = "test-model"
        """,
    )

    config = load_config(path)

    assert config.endpoint is not None
    assert resolve_api_key(config.endpoint) == "from-dotenv"


def test_resolve_api_key_requires_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure a missing key variable raises a config error."""
    monkeypatch.delenv("FOLIO_MISSING_KEY", raising=False)
    endpoint = ModelEndpointConfig(
        base_url="https://api.example.com/v1",
        api_key_env="FOLIO_MISSING_KEY",
        model_id="test-model",
    )

    with pytest.raises(ConfigError, match="FOLIO_MISSING_KEY"):
        resolve_api_key(endpoint)
