"""Pomodoro cadence: which phase follows the one that just ended."""

from dataclasses import dataclass

from .settings import FocusSettings
from .state import SessionType


def next_session_type(
    current: SessionType, focus_count: int, sessions_before_long_break: int
) -> SessionType:
    """
    Determine the phase that follows ``current``.

    Args:
        current: The phase that just ended
        focus_count: Focus phases finished so far, including ``current``
        sessions_before_long_break: Long break cadence (>= 1)

    Returns:
        ``long_break`` every n-th focus phase, ``short_break`` after other
        focus phases and ``focus`` after any break
    """
    if current != "focus":
        return "focus"

    if focus_count > 0 and focus_count % sessions_before_long_break == 0:
        return "long_break"
    return "short_break"


@dataclass
class CycleState:
    """Session-scoped Pomodoro cycle position. Not persisted."""

    completed_focus_sessions: int = 0
    next_phase: SessionType = "focus"

    def complete_phase(
        self, session_type: SessionType, settings: FocusSettings
    ) -> SessionType:
        """Record the end of a phase and pre-select the next one."""
        if session_type == "focus":
            self.completed_focus_sessions += 1

        self.next_phase = next_session_type(
            session_type,
            self.completed_focus_sessions,
            settings.sessions_before_long_break,
        )
        return self.next_phase

    def position_in_cycle(self, settings: FocusSettings) -> int:
        """Number of focus phases finished in the current cycle (0..n-1)."""
        return self.completed_focus_sessions % settings.sessions_before_long_break

    def progress_dots(self, settings: FocusSettings) -> str:
        """Get progress dots showing cycle position."""
        done = self.position_in_cycle(settings)
        if done == 0 and self.next_phase == "long_break":
            done = settings.sessions_before_long_break

        dots = []
        for i in range(settings.sessions_before_long_break):
            if i < done:
                dots.append("●")  # Completed
            elif i == done and self.next_phase == "focus":
                dots.append("◉")  # Current
            else:
                dots.append("○")  # Upcoming

        return " ".join(dots)
