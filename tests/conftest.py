"""Shared test fixtures and configuration.

Provides a manually driven clock plus infrastructure to isolate tests from
the real filesystem and API.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from timelens_cli.models.focus.history import SessionLog
from timelens_cli.models.focus.settings import FocusSettings, SettingsManager
from timelens_cli.models.focus.timer import FocusTimer

START = datetime(2026, 3, 10, 9, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Manual clock
# ---------------------------------------------------------------------------


class ManualTick:
    """Tick handle that only fires when the FakeClock says so."""

    def __init__(self, interval_ms: int, callback: Callable[[], None]):
        self.interval_ms = interval_ms
        self.callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        self._active = False


class FakeClock:
    """Deterministic Clock: time moves only through ``advance``."""

    def __init__(self, start: datetime = START):
        self.start = start
        self.offset = 0.0
        self.handles: list[ManualTick] = []

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.offset)

    def monotonic(self) -> float:
        return self.offset

    def schedule_tick(self, interval_ms: int, callback: Callable[[], None]) -> ManualTick:
        handle = ManualTick(interval_ms, callback)
        self.handles.append(handle)
        return handle

    @property
    def active_handles(self) -> list[ManualTick]:
        return [h for h in self.handles if h.active]

    def fire(self) -> None:
        """Deliver one tick to every active handle."""
        for handle in self.active_handles:
            handle.callback()

    def advance(self, seconds: float, ticks: bool = True) -> None:
        """
        Move time forward.

        With ``ticks`` a tick is delivered after every whole second, like a
        foreground app; without, time jumps silently, like a suspended one.
        """
        if not ticks:
            self.offset += seconds
            return
        whole = int(seconds)
        for _ in range(whole):
            self.offset += 1
            self.fire()
        self.offset += seconds - whole

    def jump_days(self, days: int) -> None:
        self.offset += days * 86400


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Focus engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def session_log(tmp_path) -> SessionLog:
    """SessionLog backed by a tmp SQLite file."""
    return SessionLog(tmp_path / "focus_sessions.db")


@pytest.fixture()
def short_settings() -> FocusSettings:
    """One-minute phases, long break every second focus."""
    return FocusSettings(
        focus_duration=1,
        short_break_duration=1,
        long_break_duration=2,
        sessions_before_long_break=2,
    )


@pytest.fixture()
def settings_manager(short_settings) -> SettingsManager:
    return SettingsManager(short_settings)


@pytest.fixture()
def timer(settings_manager, session_log, clock) -> FocusTimer:
    timer = FocusTimer(settings_manager, session_log, clock=clock)
    yield timer
    timer.shutdown()


# ---------------------------------------------------------------------------
# Config isolation helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def tmp_config(tmp_path):
    """Provide a real ConfigService backed by a temporary directory.

    Patches platform dirs so config/data files land in *tmp_path* only.
    Also clears the lru_caches so each test gets fresh service instances.
    """
    from timelens_cli.services.config_service import ConfigService, get_config_service
    from timelens_cli.services.focus_service import get_focus_service

    tmpdir = str(tmp_path)
    get_config_service.cache_clear()
    get_focus_service.cache_clear()
    with patch("timelens_cli.services.config_service.user_config_dir", return_value=tmpdir):
        with patch("timelens_cli.services.config_service.user_data_dir", return_value=tmpdir):
            svc = ConfigService()
            with patch(
                "timelens_cli.services.config_service.get_config_service",
                return_value=svc,
            ):
                yield svc
    get_config_service.cache_clear()
    get_focus_service.cache_clear()


@pytest.fixture(autouse=True)
def isolated_log_dir(tmp_path):
    """Keep the application log out of the real user log directory."""
    with patch("timelens_cli.utils.logger.user_log_dir", return_value=str(tmp_path / "logs")):
        yield
