"""Focus timer state machine.

States: idle -> running <-> paused -> completed -> idle. A single lock
serializes ticks and user transitions. Records are queued under that lock
and saved after it is released, in completion order, under a separate
persistence lock; subscribers are notified last so neither can stall the
countdown.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, Protocol

from .clock import Clock, SystemClock, TickHandle
from .cycling import CycleState, next_session_type
from .exceptions import PersistenceError
from .history import SessionRecord
from .settings import SettingsManager
from .state import (
    SESSION_TYPES,
    ActiveSession,
    SessionType,
    TimerState,
    normalize_intention,
)

logger = logging.getLogger(__name__)

TICK_INTERVAL_MS = 1000
DEFAULT_MAX_SUBSCRIBERS = 16

EventKind = Literal[
    "started",
    "paused",
    "resumed",
    "tick",
    "phase_completed",
    "idle",
    "reset",
    "persistence_failed",
]


class RecordSink(Protocol):
    """Anything records can be appended to (SessionLog in production)."""

    def append(self, record: SessionRecord) -> None: ...


@dataclass(frozen=True)
class TimerSnapshot:
    """Read-only view of the timer for observers."""

    state: TimerState
    session_type: SessionType
    next_session_type: SessionType
    remaining_seconds: int
    total_duration_seconds: int
    progress: float
    intention: str
    completed_focus_sessions: int
    pending_records: int = 0


@dataclass(frozen=True)
class TimerEvent:
    """Published to subscribers on every transition and tick."""

    kind: EventKind
    snapshot: TimerSnapshot
    record: SessionRecord | None = None
    error: Exception | None = None


class FocusTimer:
    """Pomodoro countdown cycling through focus and break phases."""

    def __init__(
        self,
        settings: SettingsManager,
        session_log: RecordSink,
        clock: Clock | None = None,
        max_subscribers: int = DEFAULT_MAX_SUBSCRIBERS,
    ):
        self.settings = settings
        self.session_log = session_log
        self.clock = clock or SystemClock()
        self.max_subscribers = max_subscribers

        self._lock = threading.RLock()
        self._state: TimerState = "idle"
        self._cycle = CycleState()
        self._active: ActiveSession | None = None
        self._finished: ActiveSession | None = None
        self._intention = ""
        self._ticker: TickHandle | None = None
        self._subscribers: list[Callable[[TimerEvent], None]] = []
        self._pending: list[SessionRecord] = []
        self._outbox: deque[SessionRecord] = deque()
        self._persist_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def completed_focus_sessions(self) -> int:
        """Focus phases finished (naturally or skipped) since startup."""
        return self._cycle.completed_focus_sessions

    @property
    def cycle(self) -> CycleState:
        return self._cycle

    @property
    def pending_records(self) -> list[SessionRecord]:
        """Records whose append failed and await ``retry_pending``."""
        with self._lock:
            return list(self._pending)

    def snapshot(self) -> TimerSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> TimerSnapshot:
        now = self.clock.monotonic()
        count = self._cycle.completed_focus_sessions

        if self._active is not None:
            session = self._active
            predicted = next_session_type(
                session.session_type,
                count + (1 if session.session_type == "focus" else 0),
                self.settings.current.sessions_before_long_break,
            )
            return TimerSnapshot(
                state=self._state,
                session_type=session.session_type,
                next_session_type=predicted,
                remaining_seconds=session.remaining_seconds(now),
                total_duration_seconds=session.total_duration_seconds,
                progress=session.progress(now),
                intention=session.intention,
                completed_focus_sessions=count,
                pending_records=len(self._pending),
            )

        if self._state == "completed" and self._finished is not None:
            return TimerSnapshot(
                state=self._state,
                session_type=self._finished.session_type,
                next_session_type=self._cycle.next_phase,
                remaining_seconds=0,
                total_duration_seconds=self._finished.total_duration_seconds,
                progress=1.0,
                intention=self._finished.intention,
                completed_focus_sessions=count,
                pending_records=len(self._pending),
            )

        upcoming = self._cycle.next_phase
        total = self.settings.current.duration_seconds(upcoming)
        return TimerSnapshot(
            state=self._state,
            session_type=upcoming,
            next_session_type=upcoming,
            remaining_seconds=total,
            total_duration_seconds=total,
            progress=0.0,
            intention=self._intention,
            completed_focus_sessions=count,
            pending_records=len(self._pending),
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self, callback: Callable[[TimerEvent], None]
    ) -> Callable[[], None]:
        """
        Register an observer for timer events.

        Returns:
            A function that removes the subscription

        Raises:
            ValueError: If max_subscribers observers are already registered
        """
        with self._lock:
            if len(self._subscribers) >= self.max_subscribers:
                raise ValueError(
                    f"Timer already has {self.max_subscribers} subscribers"
                )
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _event(
        self,
        kind: EventKind,
        record: SessionRecord | None = None,
        error: Exception | None = None,
    ) -> TimerEvent:
        return TimerEvent(kind, self._snapshot_locked(), record, error)

    def _dispatch(self, events: list[TimerEvent]) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for event in events:
            for callback in subscribers:
                try:
                    callback(event)
                except Exception:
                    logger.warning(
                        "Timer subscriber failed on %s event", event.kind, exc_info=True
                    )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def set_intention(self, text: str | None) -> str:
        """Set the intention attached to the next phase started."""
        with self._lock:
            self._intention = normalize_intention(text)
            return self._intention

    def start(
        self, session_type: SessionType | None = None, intention: str | None = None
    ) -> bool:
        """
        Start a phase. No-op unless idle.

        Args:
            session_type: Phase to run (defaults to the pre-selected one)
            intention: Optional intention text (max 100 characters)
        """
        if session_type is not None and session_type not in SESSION_TYPES:
            raise ValueError(f"Unknown session type: {session_type}")

        with self._lock:
            if self._state != "idle":
                return False
            if intention is not None:
                self._intention = normalize_intention(intention)
            events = [self._start_locked(session_type or self._cycle.next_phase)]

        self._dispatch(events)
        return True

    def _start_locked(self, session_type: SessionType) -> TimerEvent:
        total = self.settings.current.duration_seconds(session_type)
        self._active = ActiveSession(
            session_type=session_type,
            total_duration_seconds=total,
            started_at=self.clock.now(),
            started_monotonic=self.clock.monotonic(),
            intention=self._intention,
        )
        self._finished = None
        self._state = "running"
        self._start_ticker()
        logger.info("Started %s phase (%ss)", session_type, total)
        return self._event("started")

    def pause(self) -> bool:
        """Freeze the countdown. No-op unless running."""
        with self._lock:
            events = self._catch_up_locked()
            if self._state == "running":
                assert self._active is not None
                self._active.pause(self.clock.monotonic())
                self._state = "paused"
                self._stop_ticker()
                events.append(self._event("paused"))
                paused = True
            else:
                paused = False

        self._finish(events)
        return paused

    def resume(self) -> bool:
        """Continue a paused countdown. No-op unless paused."""
        with self._lock:
            if self._state != "paused":
                return False
            assert self._active is not None
            self._active.resume(self.clock.monotonic())
            self._state = "running"
            self._start_ticker()
            events = [self._event("resumed")]

        self._dispatch(events)
        return True

    def tick(self) -> bool:
        """
        Recompute the remaining time from the clock.

        Completes the phase when the countdown reaches zero. No-op unless
        running.
        """
        with self._lock:
            if self._state != "running":
                return False
            assert self._active is not None
            if self._active.remaining_seconds(self.clock.monotonic()) > 0:
                events = [self._event("tick")]
            else:
                events = self._complete_naturally_locked(auto_start=True)

        self._finish(events)
        return True

    def skip(self) -> bool:
        """End the current phase early and move on to the next one."""
        with self._lock:
            events = self._catch_up_locked()
            if self._state in ("running", "paused"):
                record = self._complete_locked(was_interrupted=True)
                events.append(self._event("phase_completed", record))
                self._state = "idle"
                self._finished = None
                events.append(self._event("idle"))
                skipped = True
            else:
                skipped = False

        self._finish(events)
        return skipped

    def reset(self) -> bool:
        """
        Return to idle with a focus phase pre-selected.

        A running or paused phase is logged as interrupted; nothing is logged
        from idle or completed. The long-break cadence starts over.
        """
        with self._lock:
            events = self._catch_up_locked()
            previous = self._state

            record = None
            if self._state in ("running", "paused"):
                assert self._active is not None
                record = self._build_record_locked(self._active, was_interrupted=True)

            self._stop_ticker()
            self._active = None
            self._finished = None
            self._state = "idle"
            self._intention = ""
            self._cycle.next_phase = "focus"
            self._cycle.completed_focus_sessions = 0
            events.append(self._event("reset", record))

        self._finish(events)
        return previous != "idle"

    def navigate_away(self) -> bool:
        """Abandon the timer, e.g. when the user leaves the focus screen."""
        return self.reset()

    def advance(self) -> bool:
        """Move from completed to idle, keeping the pre-selected next phase."""
        with self._lock:
            if self._state != "completed":
                return False
            self._state = "idle"
            self._finished = None
            events = [self._event("idle")]

        self._dispatch(events)
        return True

    # ------------------------------------------------------------------
    # Completion helpers (lock held)
    # ------------------------------------------------------------------

    def _build_record_locked(
        self, session: ActiveSession, was_interrupted: bool
    ) -> SessionRecord:
        if was_interrupted:
            duration = session.elapsed_whole_seconds(self.clock.monotonic())
        else:
            duration = session.total_duration_seconds
        record = SessionRecord.create(
            session_type=session.session_type,
            duration_seconds=duration,
            was_interrupted=was_interrupted,
            completed_at=self.clock.now(),
            intention=session.intention,
        )
        self._outbox.append(record)
        return record

    def _complete_locked(self, was_interrupted: bool) -> SessionRecord:
        session = self._active
        assert session is not None
        record = self._build_record_locked(session, was_interrupted)

        self._stop_ticker()
        next_type = self._cycle.complete_phase(
            session.session_type, self.settings.current
        )
        self._active = None
        self._finished = session
        self._state = "completed"

        logger.info(
            "%s phase %s after %ss; next: %s",
            session.session_type,
            "skipped" if was_interrupted else "completed",
            record.duration_seconds,
            next_type,
        )
        return record

    def _complete_naturally_locked(self, auto_start: bool) -> list[TimerEvent]:
        record = self._complete_locked(was_interrupted=False)
        events = [self._event("phase_completed", record)]

        settings = self.settings.current
        next_type = self._cycle.next_phase
        if auto_start and (
            settings.auto_start_focus
            if next_type == "focus"
            else settings.auto_start_breaks
        ):
            self._state = "idle"
            self._finished = None
            events.append(self._event("idle"))
            events.append(self._start_locked(next_type))

        return events

    def _catch_up_locked(self) -> list[TimerEvent]:
        """Complete a phase whose time ran out before its tick was delivered."""
        if (
            self._state == "running"
            and self._active is not None
            and self._active.remaining_seconds(self.clock.monotonic()) == 0
        ):
            return self._complete_naturally_locked(auto_start=False)
        return []

    # ------------------------------------------------------------------
    # Ticker and persistence
    # ------------------------------------------------------------------

    def _start_ticker(self) -> None:
        if self._ticker is None:
            self._ticker = self.clock.schedule_tick(TICK_INTERVAL_MS, self.tick)

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _finish(self, events: list[TimerEvent]) -> None:
        """
        Save queued records, then notify subscribers. Runs without the lock.

        Records leave the outbox in the order they were built, so a thread
        that completes a later phase never saves before an earlier one.
        """
        with self._persist_lock:
            while True:
                with self._lock:
                    if not self._outbox:
                        break
                    record = self._outbox.popleft()
                failure = self._persist(record)
                if failure is not None:
                    events.append(failure)
        self._dispatch(events)

    def _persist(self, record: SessionRecord) -> TimerEvent | None:
        try:
            self.session_log.append(record)
        except PersistenceError as e:
            logger.warning("Could not save %s record %s: %s", record.type, record.id, e)
            with self._lock:
                self._pending.append(record)
                return self._event("persistence_failed", record, e)
        return None

    def retry_pending(self) -> int:
        """
        Retry appending records whose earlier append failed.

        Returns:
            Number of records saved; the rest stay pending
        """
        with self._persist_lock:
            with self._lock:
                pending, self._pending = self._pending, []

            saved = 0
            for index, record in enumerate(pending):
                try:
                    self.session_log.append(record)
                except PersistenceError as e:
                    logger.warning("Retry failed for record %s: %s", record.id, e)
                    with self._lock:
                        self._pending[:0] = pending[index:]
                    break
                saved += 1
        return saved

    def shutdown(self) -> None:
        """Stop the background ticker without changing state."""
        with self._lock:
            self._stop_ticker()
