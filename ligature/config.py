"""
Config system - Layered configuration with merge precedence.

Sources, later overriding earlier:
1. Config files (YAML or JSON, glob patterns supported)
2. .env file (LIGATURE_* keys only)
3. Environment variables (LIGATURE_* prefix)
4. Manual overrides

Nested keys use a double underscore in environment variables:
``LIGATURE_DATABASE__URL=sqlite:///app.db`` sets ``database.url``.
"""

from __future__ import annotations

import json
import logging
import os
from glob import glob
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values

from .faults.domains import ConfigInvalidFault, ConfigMissingFault

logger = logging.getLogger("ligature.config")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_MISSING = object()

_READERS = {
    ".json": json.load,
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
}


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > config files > defaults
    """

    def __init__(self, env_prefix: str = "LIGATURE_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list[str]] = None,
        env_prefix: str = "LIGATURE_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources with proper merge strategy.

        Args:
            paths: List of config file paths (glob patterns supported)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        if not paths and Path("ligature.yaml").exists():
            paths = ["ligature.yaml"]

        for pattern in paths or []:
            loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_from_files(self, pattern: str):
        """Merge every YAML/JSON file matching ``pattern`` in name order."""
        for path in map(Path, sorted(glob(pattern))):
            if path.suffix not in _READERS:
                logger.debug(f"Skipping config file with unknown suffix: {path}")
                continue
            with open(path) as f:
                data = _READERS[path.suffix](f)
            if data:
                self._merge_dict(self.config_data, data)
            logger.debug(f"Loaded config file {path}")

    def _load_env_file(self, path: str):
        """Merge prefixed keys from a .env file, if it exists."""
        if not Path(path).exists():
            return
        for key, value in dotenv_values(path).items():
            if key.startswith(self.env_prefix) and value is not None:
                self._set_nested(key, value)

    def _load_from_env(self):
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """``LIGATURE_DATABASE__CONNECT_RETRIES=5`` → ``{"database": {"connect_retries": 5}}``."""
        *parents, leaf = key[len(self.env_prefix):].lower().split("__")
        current = self.config_data
        for part in parents:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[leaf] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Best-effort typing of an environment string: bool, int, float, JSON, else str."""
        lowered = value.lower()
        if lowered in ("true", "yes"):
            return True
        if lowered in ("false", "no"):
            return False

        for convert in (int, float):
            try:
                return convert(value)
            except ValueError:
                pass

        if value[:1] in ("{", "["):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass
        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge ``source`` into ``target``; nested dicts merge, anything else replaces."""
        for key, value in source.items():
            if isinstance(target.get(key), dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Value at a dot-separated path, or ``default``."""
        current: Any = self.config_data
        for part in path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def require(self, path: str) -> Any:
        """
        Value at a dot-separated path.

        Raises:
            ConfigMissingFault: the path is not set
        """
        value = self.get(path, _MISSING)
        if value is _MISSING:
            raise ConfigMissingFault(path)
        return value

    def get_database_config(self) -> dict:
        """
        Get database configuration with defaults.

        Returns:
            Dictionary with ``url``, ``connect_retries`` and ``connect_retry_delay``
        """
        merged = {
            "url": "sqlite:///:memory:",
            "connect_retries": 3,
            "connect_retry_delay": 0.5,
        }
        user_config = self.get("database", {})
        if isinstance(user_config, str):
            user_config = {"url": user_config}
        self._merge_dict(merged, user_config)

        if not isinstance(merged["url"], str) or not merged["url"]:
            raise ConfigInvalidFault("database.url", "must be a non-empty string")
        if not isinstance(merged["connect_retries"], int) or merged["connect_retries"] < 1:
            raise ConfigInvalidFault("database.connect_retries", "must be a positive integer")
        if not isinstance(merged["connect_retry_delay"], (int, float)):
            raise ConfigInvalidFault("database.connect_retry_delay", "must be a number")

        return merged

    def get_logging_config(self) -> dict:
        """Get logging configuration with defaults."""
        merged = {"level": "WARNING", "format": LOG_FORMAT}
        self._merge_dict(merged, self.get("logging", {}))

        level = str(merged["level"]).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigInvalidFault("logging.level", f"unknown level '{merged['level']}'")
        merged["level"] = level
        return merged

    def to_dict(self) -> dict:
        """Export all config as dictionary."""
        return self.config_data.copy()


def configure_logging(level: str = "WARNING", fmt: str = LOG_FORMAT) -> None:
    """Apply a basic logging setup for the ``ligature`` loggers."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=fmt,
    )
    logger.debug(f"Logging configured at {level.upper()}")
