"""Daily focus statistics and streaks derived from the session history.

Everything here is a pure function of the record sequence plus the caller's
notion of "today"; nothing is cached, so replaying the same records always
gives the same numbers.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Any

from .history import SessionRecord


@dataclass(frozen=True)
class FocusStats:
    """Focus statistics for one day plus streaks and lifetime totals."""

    today_sessions: int = 0
    today_minutes: int = 0
    completed_sessions: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    total_sessions: int = 0
    total_focus_minutes: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    def to_payload(self) -> dict[str, int]:
        """Shape used by ``GET /api/focus/stats``."""
        return {
            "todaySessions": self.today_sessions,
            "todayMinutes": self.today_minutes,
            "completedSessions": self.completed_sessions,
            "currentStreak": self.current_streak,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "FocusStats":
        return cls(
            today_sessions=int(data.get("todaySessions", 0)),
            today_minutes=int(data.get("todayMinutes", 0)),
            completed_sessions=int(data.get("completedSessions", 0)),
            current_streak=int(data.get("currentStreak", 0)),
        )


def round_minutes(seconds: int | float) -> int:
    """Convert seconds to whole minutes, rounding halves up."""
    return int((seconds + 30) // 60)


def record_day(record: SessionRecord, tz: tzinfo | None = None) -> date:
    """Calendar day a record counts towards."""
    completed_at = record.completed_at
    if completed_at.tzinfo is None:
        return completed_at.date()
    return completed_at.astimezone(tz).date()


def _focus_records(records: Iterable[SessionRecord]) -> list[SessionRecord]:
    return [r for r in records if r.type == "focus"]


def streak_days(
    records: Iterable[SessionRecord], tz: tzinfo | None = None
) -> set[date]:
    """Days holding at least one non-interrupted focus session."""
    return {
        record_day(r, tz)
        for r in records
        if r.type == "focus" and not r.was_interrupted
    }


def current_streak(days: set[date], today: date) -> int:
    """
    Consecutive qualifying days ending today.

    Today without a session yet does not break the streak: counting then
    starts from yesterday.
    """
    if today in days:
        cursor = today
    elif today - timedelta(days=1) in days:
        cursor = today - timedelta(days=1)
    else:
        return 0

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(days: set[date]) -> int:
    """Longest run of consecutive qualifying days anywhere in the history."""
    longest = 0
    run = 0
    previous: date | None = None
    for day in sorted(days):
        if previous is not None and (day - previous).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


def compute_stats(
    records: Iterable[SessionRecord],
    today: date | datetime,
    tz: tzinfo | None = None,
) -> FocusStats:
    """
    Derive FocusStats from the full record sequence.

    Args:
        records: Session history (any order)
        today: The current calendar day, supplied by the caller
        tz: Timezone defining calendar days (``today``'s zone, else local)

    Returns:
        FocusStats; only focus records are counted
    """
    if isinstance(today, datetime):
        if tz is None:
            tz = today.tzinfo
        today = today.date()

    focus = _focus_records(records)
    todays = [r for r in focus if record_day(r, tz) == today]
    days = streak_days(focus, tz)

    return FocusStats(
        today_sessions=len(todays),
        today_minutes=round_minutes(sum(r.duration_seconds for r in todays)),
        completed_sessions=sum(1 for r in todays if not r.was_interrupted),
        current_streak=current_streak(days, today),
        longest_streak=longest_streak(days),
        total_sessions=len(focus),
        total_focus_minutes=round_minutes(sum(r.duration_seconds for r in focus)),
    )


def daily_focus_minutes(
    records: Iterable[SessionRecord],
    end: date,
    days: int = 7,
    tz: tzinfo | None = None,
) -> list[tuple[date, int]]:
    """
    Focus minutes per day for the ``days`` days ending at ``end``.

    Returns:
        List of (day, minutes) pairs, oldest first, including empty days
    """
    start = end - timedelta(days=days - 1)
    totals: dict[date, int] = {start + timedelta(days=i): 0 for i in range(days)}
    for record in _focus_records(records):
        day = record_day(record, tz)
        if day in totals:
            totals[day] += record.duration_seconds

    return [(day, round_minutes(seconds)) for day, seconds in totals.items()]
