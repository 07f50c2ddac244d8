"""Focus mode - Pomodoro session engine for TimeLens."""

from .clock import Clock, SystemClock, TickHandle
from .cycling import CycleState, next_session_type
from .exceptions import (
    ConfigValidationError,
    PersistenceError,
    SyncError,
    TimeLensError,
)
from .history import SessionLog, SessionRecord
from .settings import FocusSettings, SettingsManager
from .state import ActiveSession, SessionType, TimerState
from .stats import FocusStats, compute_stats
from .timer import FocusTimer, TimerEvent, TimerSnapshot

__all__ = [
    "ActiveSession",
    "Clock",
    "ConfigValidationError",
    "CycleState",
    "FocusSettings",
    "FocusStats",
    "FocusTimer",
    "PersistenceError",
    "SessionLog",
    "SessionRecord",
    "SessionType",
    "SettingsManager",
    "SyncError",
    "SystemClock",
    "TickHandle",
    "TimeLensError",
    "TimerEvent",
    "TimerSnapshot",
    "TimerState",
    "compute_stats",
    "next_session_type",
]
