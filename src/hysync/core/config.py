"""Configuration management for hysync.

This module handles loading and saving application configuration to/from
a JSON file. The config directory can be customized via CLI argument.

Nested sections ("sync", "server") are addressed with dotted keys, e.g.
``config.get("sync.interval_seconds")``.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import secrets
from pathlib import Path
from typing import Any, Dict, Optional

from .api_models import DEFAULT_API_BASE_URL

logger = logging.getLogger(__name__)

__all__ = ["Config", "DEFAULT_CONFIG_DIR"]

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "hysync"

DEFAULT_SYNC_INTERVAL_SECONDS = 5 * 60
DEFAULT_HISTORY_LIMIT = 100
DEFAULT_LIBRARY_LIMIT = 1000
DEFAULT_SERVER_PORT = 3000
DEFAULT_TOKEN_TTL_DAYS = 30


class Config:
    """Manages application configuration stored in JSON format.

    Attributes:
        config_dir: Path to the configuration directory
        config_file: Path to config.json
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_dir: Custom config directory path. If None, uses ~/.config/hysync/
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file = self.config_dir / "config.json"
        self.config_data = self.load_config()

    def _default_config(self) -> Dict[str, Any]:
        return {
            "api_base_url": DEFAULT_API_BASE_URL,
            "database_file": str(self.config_dir / "library.db"),
            "request_timeout": 30,
            "sync": {
                "interval_seconds": DEFAULT_SYNC_INTERVAL_SECONDS,
                "history_limit": DEFAULT_HISTORY_LIMIT,
                "library_limit": DEFAULT_LIBRARY_LIMIT,
                "periodic_enabled": True,
            },
            "server": {
                "host": "0.0.0.0",
                "port": DEFAULT_SERVER_PORT,
                "database_file": str(self.config_dir / "server.db"),
                "token_ttl_days": DEFAULT_TOKEN_TTL_DAYS,
                "secret": None,
            },
        }

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file, filling in defaults.

        Creates the file with defaults if it does not exist. Invalid JSON
        falls back to defaults.
        """
        defaults = self._default_config()
        if not self.config_file.exists():
            self.save_config(defaults)
            return defaults

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {self.config_file}: {e}. Using defaults.")
            return defaults

        if not isinstance(loaded, dict):
            logger.warning(f"Config file {self.config_file} is not an object. Using defaults.")
            return defaults

        merged = copy.deepcopy(defaults)
        for key, value in loaded.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key].update(value)
            else:
                merged[key] = value
        return merged

    def save_config(self, config: Optional[Dict[str, Any]] = None) -> None:
        """Write configuration to file."""
        data = config if config is not None else self.config_data
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by (dotted) key."""
        node: Any = self.config_data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node if node is not None else default

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by (dotted) key and save to file."""
        parts = key.split(".")
        node = self.config_data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
        self.save_config()

    def get_config_dir(self) -> Path:
        """Get the configuration directory path."""
        return self.config_dir

    # ===== Client =====

    def get_api_base_url(self) -> str:
        return str(self.get("api_base_url", DEFAULT_API_BASE_URL)).rstrip("/")

    def get_database_file(self) -> Path:
        return Path(self.get("database_file", str(self.config_dir / "library.db")))

    def get_request_timeout(self) -> int:
        return int(self.get("request_timeout", 30))

    def get_session_file(self) -> Path:
        """Get the path where the auth token and user are persisted."""
        return self.config_dir / "session.json"

    # ===== Sync =====

    def get_sync_interval(self) -> float:
        return float(self.get("sync.interval_seconds", DEFAULT_SYNC_INTERVAL_SECONDS))

    def get_history_limit(self) -> int:
        return int(self.get("sync.history_limit", DEFAULT_HISTORY_LIMIT))

    def get_library_limit(self) -> int:
        return int(self.get("sync.library_limit", DEFAULT_LIBRARY_LIMIT))

    def is_periodic_sync_enabled(self) -> bool:
        return bool(self.get("sync.periodic_enabled", True))

    # ===== Server =====

    def get_server_host(self) -> str:
        return str(self.get("server.host", "0.0.0.0"))

    def get_server_port(self) -> int:
        env_port = os.environ.get("HYSYNC_PORT")
        if env_port:
            return int(env_port)
        return int(self.get("server.port", DEFAULT_SERVER_PORT))

    def get_server_database_file(self) -> Path:
        env_db = os.environ.get("HYSYNC_DATABASE")
        if env_db:
            return Path(env_db)
        return Path(self.get("server.database_file", str(self.config_dir / "server.db")))

    def get_token_ttl_days(self) -> int:
        return int(self.get("server.token_ttl_days", DEFAULT_TOKEN_TTL_DAYS))

    def get_server_secret(self) -> str:
        """Get the token signing secret, generating and persisting one if unset."""
        env_secret = os.environ.get("HYSYNC_SECRET")
        if env_secret:
            return env_secret
        secret = self.get("server.secret")
        if not secret:
            secret = secrets.token_hex(32)
            self.set("server.secret", secret)
            logger.info("Generated new server signing secret")
        return secret
