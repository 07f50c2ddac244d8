"""Active focus session state using an elapsed-real-time model."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

SessionType = Literal["focus", "short_break", "long_break"]
TimerState = Literal["idle", "running", "paused", "completed"]

SESSION_TYPES: tuple[SessionType, ...] = ("focus", "short_break", "long_break")

MAX_INTENTION_LENGTH = 100

# Session type names used by the mobile app and the remote API
_WIRE_TYPES: dict[str, str] = {
    "focus": "focus",
    "short_break": "shortBreak",
    "long_break": "longBreak",
}
_FROM_WIRE: dict[str, SessionType] = {v: k for k, v in _WIRE_TYPES.items()}  # type: ignore[misc]


def to_wire_type(session_type: SessionType) -> str:
    """Convert a session type to its remote name (``shortBreak``...)."""
    return _WIRE_TYPES[session_type]


def from_wire_type(value: str) -> SessionType:
    """Parse a session type given either its remote or local name."""
    if value in _FROM_WIRE:
        return _FROM_WIRE[value]
    if value in SESSION_TYPES:
        return value  # type: ignore[return-value]
    raise ValueError(f"Unknown session type: {value}")


def normalize_intention(text: str | None) -> str:
    """Strip the intention text and cap it at MAX_INTENTION_LENGTH."""
    if not text:
        return ""
    return text.strip()[:MAX_INTENTION_LENGTH]


@dataclass
class ActiveSession:
    """The phase currently owned by the timer.

    Remaining time is always derived from monotonic timestamps, never from a
    decremented counter, so missed or late ticks cannot desynchronize it.
    """

    session_type: SessionType
    total_duration_seconds: int
    started_at: datetime
    started_monotonic: float
    intention: str = ""
    accumulated_pause_seconds: float = 0.0
    paused_at: float | None = None

    @property
    def is_paused(self) -> bool:
        return self.paused_at is not None

    def elapsed_seconds(self, now: float) -> float:
        """Running time so far, excluding pauses, within [0, total]."""
        reference = self.paused_at if self.paused_at is not None else now
        elapsed = reference - self.started_monotonic - self.accumulated_pause_seconds
        return min(float(self.total_duration_seconds), max(0.0, elapsed))

    def remaining_seconds(self, now: float) -> int:
        """Whole seconds left on the countdown, within [0, total]."""
        remaining = self.total_duration_seconds - math.floor(self.elapsed_seconds(now))
        return max(0, min(self.total_duration_seconds, remaining))

    def elapsed_whole_seconds(self, now: float) -> int:
        """Elapsed time as recorded in history (total minus remaining)."""
        return self.total_duration_seconds - self.remaining_seconds(now)

    def progress(self, now: float) -> float:
        if self.total_duration_seconds <= 0:
            return 0.0
        value = 1 - self.remaining_seconds(now) / self.total_duration_seconds
        return min(1.0, max(0.0, value))

    def pause(self, now: float) -> None:
        if self.paused_at is None:
            self.paused_at = now

    def resume(self, now: float) -> None:
        if self.paused_at is None:
            return
        self.accumulated_pause_seconds += max(0.0, now - self.paused_at)
        self.paused_at = None
