"""Focus timer settings with validated partial updates."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .exceptions import ConfigValidationError
from .state import SessionType

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 1
MAX_FOCUS_MINUTES = 180
MAX_SHORT_BREAK_MINUTES = 60
MAX_LONG_BREAK_MINUTES = 120
MAX_SESSIONS_BEFORE_LONG_BREAK = 12


class FocusSettings(BaseModel):
    """Phase durations (minutes) and break cadence."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    focus_duration: int = Field(
        default=25, ge=MIN_DURATION_MINUTES, le=MAX_FOCUS_MINUTES, strict=True
    )
    short_break_duration: int = Field(
        default=5, ge=MIN_DURATION_MINUTES, le=MAX_SHORT_BREAK_MINUTES, strict=True
    )
    long_break_duration: int = Field(
        default=15, ge=MIN_DURATION_MINUTES, le=MAX_LONG_BREAK_MINUTES, strict=True
    )
    sessions_before_long_break: int = Field(
        default=4, ge=1, le=MAX_SESSIONS_BEFORE_LONG_BREAK, strict=True
    )
    auto_start_breaks: bool = Field(default=False, strict=True)
    auto_start_focus: bool = Field(default=False, strict=True)

    def duration_minutes(self, session_type: SessionType) -> int:
        """Configured duration for a phase, in minutes."""
        if session_type == "focus":
            return self.focus_duration
        elif session_type == "short_break":
            return self.short_break_duration
        elif session_type == "long_break":
            return self.long_break_duration
        raise ValueError(f"Unknown session type: {session_type}")

    def duration_seconds(self, session_type: SessionType) -> int:
        """Configured duration for a phase, in seconds."""
        return self.duration_minutes(session_type) * 60


def _recognized_fields(updates: Mapping[str, Any]) -> dict[str, Any]:
    """Map snake_case or camelCase keys onto field names, dropping the rest."""
    names = {}
    for name, field in FocusSettings.model_fields.items():
        names[name] = name
        if field.alias:
            names[field.alias] = name

    recognized = {}
    for key, value in updates.items():
        if key in names:
            recognized[names[key]] = value
        else:
            logger.debug("Ignoring unknown settings key %r", key)
    return recognized


class SettingsManager:
    """Holds the current settings and applies validated partial updates."""

    def __init__(
        self,
        settings: FocusSettings | None = None,
        save: Callable[[FocusSettings], None] | None = None,
    ):
        self._settings = settings or FocusSettings()
        self._save = save

    @property
    def current(self) -> FocusSettings:
        return self._settings

    def update(self, updates: Mapping[str, Any]) -> FocusSettings:
        """
        Merge recognized fields from ``updates`` into the current settings.

        The merged result is validated as a whole; if any value is out of
        range nothing is applied.

        Raises:
            ConfigValidationError: If the merged settings are invalid
            PersistenceError: If saving fails (the update is still applied)
        """
        recognized = _recognized_fields(updates)
        merged = {**self._settings.model_dump(), **recognized}

        try:
            new_settings = FocusSettings.model_validate(merged)
        except ValidationError as e:
            errors = [
                {
                    "field": ".".join(str(part) for part in err["loc"]),
                    "message": err["msg"],
                }
                for err in e.errors()
            ]
            fields = ", ".join(err["field"] for err in errors)
            raise ConfigValidationError(
                f"Invalid focus settings: {fields}", errors
            ) from e

        return self._apply(new_settings)

    def reset(self) -> FocusSettings:
        """Restore the default settings."""
        return self._apply(FocusSettings())

    def _apply(self, settings: FocusSettings) -> FocusSettings:
        self._settings = settings
        logger.info("Focus settings updated: %s", settings.model_dump())
        if self._save is not None:
            self._save(settings)
        return settings
