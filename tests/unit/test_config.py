"""Unit tests for configuration management.

Tests the Config class from core/config.py.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from hysync.core.api_models import DEFAULT_API_BASE_URL
from hysync.core.config import Config


@pytest.mark.unit
class TestLoadConfig:
    """Test configuration loading."""

    def test_creates_default_config_if_missing(self, test_config_dir: Path) -> None:
        config = Config(config_dir=test_config_dir)
        assert (test_config_dir / "config.json").exists()
        assert config.get_api_base_url() == DEFAULT_API_BASE_URL
        assert config.get_database_file() == test_config_dir / "library.db"

    def test_loads_existing_values_over_defaults(self, test_config_dir: Path) -> None:
        with open(test_config_dir / "config.json", "w") as f:
            json.dump({"api_base_url": "http://localhost:3000/", "sync": {"history_limit": 5}}, f)

        config = Config(config_dir=test_config_dir)
        assert config.get_api_base_url() == "http://localhost:3000"
        assert config.get_history_limit() == 5
        # Nested defaults survive a partial section
        assert config.get_library_limit() == 1000

    def test_handles_invalid_json(self, test_config_dir: Path) -> None:
        with open(test_config_dir / "config.json", "w") as f:
            f.write("{invalid json")

        config = Config(config_dir=test_config_dir)
        assert config.get_request_timeout() == 30

    def test_handles_non_object(self, test_config_dir: Path) -> None:
        with open(test_config_dir / "config.json", "w") as f:
            json.dump([1, 2, 3], f)

        config = Config(config_dir=test_config_dir)
        assert config.get_sync_interval() == 300.0


@pytest.mark.unit
class TestGetSet:
    """Test dotted get and set."""

    def test_set_persists(self, test_config_dir: Path) -> None:
        Config(config_dir=test_config_dir).set("sync.interval_seconds", 60)
        assert Config(config_dir=test_config_dir).get_sync_interval() == 60.0

    def test_set_creates_sections(self, test_config: Config) -> None:
        test_config.set("extra.nested.key", "v")
        assert test_config.get("extra.nested.key") == "v"

    def test_get_default_for_missing(self, test_config: Config) -> None:
        assert test_config.get("nonexistent") is None
        assert test_config.get("sync.nope", "d") == "d"

    def test_periodic_flag(self, test_config: Config) -> None:
        assert test_config.is_periodic_sync_enabled() is True
        test_config.set("sync.periodic_enabled", False)
        assert test_config.is_periodic_sync_enabled() is False


@pytest.mark.unit
class TestServerSettings:
    """Test server-side settings and environment overrides."""

    def test_defaults(self, test_config: Config, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HYSYNC_PORT", raising=False)
        monkeypatch.delenv("HYSYNC_DATABASE", raising=False)
        assert test_config.get_server_port() == 3000
        assert test_config.get_server_host() == "0.0.0.0"
        assert test_config.get_server_database_file().name == "server.db"
        assert test_config.get_token_ttl_days() == 30

    def test_environment_overrides(
        self, test_config: Config, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("HYSYNC_PORT", "8123")
        monkeypatch.setenv("HYSYNC_DATABASE", str(tmp_path / "other.db"))
        assert test_config.get_server_port() == 8123
        assert test_config.get_server_database_file() == tmp_path / "other.db"

    def test_secret_is_generated_once(
        self, test_config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("HYSYNC_SECRET", raising=False)
        secret = Config(config_dir=test_config_dir).get_server_secret()
        assert len(secret) == 64
        assert Config(config_dir=test_config_dir).get_server_secret() == secret

    def test_secret_from_environment(
        self, test_config: Config, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("HYSYNC_SECRET", "from-env")
        assert test_config.get_server_secret() == "from-env"

    def test_session_file_in_config_dir(self, test_config: Config) -> None:
        assert test_config.get_session_file() == test_config.config_dir / "session.json"
