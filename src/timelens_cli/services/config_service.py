"""Configuration service for managing TimeLens CLI configuration.

This module provides the ConfigService class, the single source of truth for
configuration management. It handles:

- Loading and saving config.json (created with defaults on first run)
- Loading and saving the focus timer settings
- Credential storage for the remote focus API
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from json import JSONDecodeError
from pathlib import Path

from platformdirs import user_config_dir, user_data_dir
from pydantic import ValidationError

from timelens_cli.models.config_models import AppConfig
from timelens_cli.models.focus.exceptions import PersistenceError
from timelens_cli.models.focus.settings import FocusSettings

logger = logging.getLogger(__name__)


class ConfigService:
    """Service for managing application configuration.

    Loads ``config.json`` lazily, writes it back on every change and keeps the
    parsed AppConfig cached in memory.
    """

    def __init__(self):
        """Initialize the config service."""

        self.config_dir = Path(user_config_dir("timelens_cli"))
        self.config_path = self.config_dir / "config.json"
        self.credentials_path = self.config_dir / "credentials.json"
        self.data_dir = Path(user_data_dir("timelens_cli"))

        # Ensure directories exist
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        """Get or load the current configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    @property
    def session_db_path(self) -> Path:
        """Location of the local focus session log."""
        return self.data_dir / "focus_sessions.db"

    def load_config(self) -> AppConfig:
        """
        Load configuration from storage.

        Raises:
            PersistenceError: If the file exists but cannot be read or parsed
        """
        if self._config is not None:
            return self._config  # Return cached config if already loaded

        try:
            with open(self.config_path, encoding="utf-8") as f:
                self._config = AppConfig.model_validate_json(f.read())
        except FileNotFoundError:
            # Expected on first run
            self._config = AppConfig()
            self.save_config()
        except (OSError, ValidationError) as e:
            raise PersistenceError(f"Failed to load config: {e}") from e

        return self._config

    def save_config(self) -> None:
        """Save the current configuration to storage."""
        if self._config is None:
            raise RuntimeError("No configuration to save")

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                f.write(self._config.model_dump_json(indent=4))

            # Set file permissions
            self.config_path.chmod(0o600)
        except OSError as e:
            raise PersistenceError(f"Failed to save config: {e}") from e

    def reset_config(self) -> AppConfig:
        """Reset configuration to defaults."""
        self._config = AppConfig()
        self.save_config()
        return self._config

    def load_settings(self) -> FocusSettings:
        """Focus timer settings from the config file."""
        return self.config.focus

    def save_settings(self, settings: FocusSettings) -> None:
        """Persist focus timer settings."""
        self.config.focus = settings
        self.save_config()
        logger.debug("Saved focus settings to %s", self.config_path)

    def load_credentials(self) -> dict | None:
        """Load credentials for the remote API.

        Returns:
            dict with 'token', or None if not found
        """
        if not self.credentials_path.exists():
            return None

        try:
            with open(self.credentials_path, encoding="utf-8") as f:
                return json.load(f)
        except (JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable credentials file")
            return None

    def save_credentials(self, access_token: str) -> None:
        """Store the bearer token used by the API client."""
        self.credentials_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.credentials_path, "w", encoding="utf-8") as f:
            json.dump({"token": access_token}, f, indent=2)

        # Set secure file permissions
        self.credentials_path.chmod(0o600)

    def clear_credentials(self) -> None:
        if self.credentials_path.exists():
            self.credentials_path.unlink()


@lru_cache(maxsize=1)
def get_config_service() -> ConfigService:
    """Get a cached ConfigService instance."""
    config_service = ConfigService()
    config_service.load_config()
    return config_service
