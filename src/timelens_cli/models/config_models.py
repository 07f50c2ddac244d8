"""Configuration models for TimeLens CLI.

The whole file is stored as ``config.json`` in the user config directory.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from timelens_cli.models.focus.settings import FocusSettings


class APIConfig(BaseModel):
    """Remote focus API configuration."""

    endpoint: str = Field(default="http://localhost:3000")
    timeout: int = Field(default=30, ge=1)
    retry: int = Field(default=3, ge=0)

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Strip whitespace and trailing slashes."""
        if not v or not v.strip():
            raise ValueError("endpoint cannot be empty")
        return v.strip().rstrip("/")


class SyncConfig(BaseModel):
    """Sync configuration."""

    auto: bool = Field(
        default=False, description="Push each finished session right away"
    )
    restore_limit: int = Field(default=100, ge=1)


class AppConfig(BaseModel):
    """Main TimeLens configuration."""

    api: APIConfig = Field(default_factory=APIConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    focus: FocusSettings = Field(default_factory=FocusSettings)
