"""Unit tests for the FocusTimer state machine.

Time is driven by the FakeClock from conftest: ``clock.advance(n)`` moves
time forward delivering one tick per second, ``ticks=False`` simulates a
suspended process that misses its ticks.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from timelens_cli.models.focus.clock import SystemClock
from timelens_cli.models.focus.exceptions import PersistenceError
from timelens_cli.models.focus.history import SessionLog
from timelens_cli.models.focus.settings import FocusSettings, SettingsManager
from timelens_cli.models.focus.timer import FocusTimer, TimerEvent


def _collect(timer: FocusTimer) -> list[TimerEvent]:
    events: list[TimerEvent] = []
    timer.subscribe(events.append)
    return events


def _kinds(events: list[TimerEvent]) -> list[str]:
    return [e.kind for e in events if e.kind != "tick"]


# ---------------------------------------------------------------------------
# start
# ---------------------------------------------------------------------------


class TestStart:
    def test_start_defaults_to_focus(self, timer, clock):
        assert timer.start() is True
        snap = timer.snapshot()
        assert snap.state == "running"
        assert snap.session_type == "focus"
        assert snap.total_duration_seconds == 60
        assert snap.remaining_seconds == 60
        assert len(clock.active_handles) == 1

    @pytest.mark.parametrize("minutes", [1, 25, 180])
    def test_total_matches_configured_focus_duration(self, session_log, clock, minutes):
        settings = SettingsManager(FocusSettings(focus_duration=minutes))
        timer = FocusTimer(settings, session_log, clock=clock)
        timer.start("focus")
        assert timer.snapshot().total_duration_seconds == minutes * 60

    def test_start_specific_type(self, timer):
        timer.start("long_break")
        snap = timer.snapshot()
        assert snap.session_type == "long_break"
        assert snap.total_duration_seconds == 120

    def test_start_while_running_is_noop(self, timer, clock):
        timer.start()
        clock.advance(5)
        assert timer.start("long_break") is False
        snap = timer.snapshot()
        assert snap.session_type == "focus"
        assert snap.remaining_seconds == 55
        assert len(clock.active_handles) == 1

    def test_start_unknown_type_raises(self, timer):
        with pytest.raises(ValueError):
            timer.start("nap")
        assert timer.state == "idle"

    def test_intention_is_truncated(self, timer, session_log):
        timer.start(intention="x" * 150)
        assert len(timer.snapshot().intention) == 100
        timer.skip()
        assert len(session_log.all()[0].intention) == 100

    def test_set_intention_applies_to_next_start(self, timer):
        assert timer.set_intention("  write tests ") == "write tests"
        timer.start()
        assert timer.snapshot().intention == "write tests"

    def test_start_emits_started_event(self, timer):
        events = _collect(timer)
        timer.start()
        assert _kinds(events) == ["started"]
        assert events[0].snapshot.state == "running"


# ---------------------------------------------------------------------------
# Countdown
# ---------------------------------------------------------------------------


class TestCountdown:
    def test_remaining_is_non_increasing_and_never_negative(self, timer, clock):
        timer.start()
        seen = []
        for _ in range(70):
            clock.advance(1)
            seen.append(timer.snapshot().remaining_seconds)
        assert all(a >= b for a, b in zip(seen, seen[1:]))
        assert min(seen) == 0

    def test_progress_stays_in_unit_interval(self, timer, clock):
        timer.start()
        clock.advance(15)
        assert timer.snapshot().progress == pytest.approx(0.25)
        clock.advance(100)
        assert 0.0 <= timer.snapshot().progress <= 1.0

    def test_tick_outside_running_is_noop(self, timer):
        assert timer.tick() is False
        assert timer.state == "idle"

    def test_missed_ticks_do_not_desynchronize(self, timer, clock):
        timer.start()
        clock.advance(40, ticks=False)
        assert timer.snapshot().remaining_seconds == 20
        clock.advance(1)
        assert timer.snapshot().remaining_seconds == 19

    def test_settings_change_does_not_resize_active_phase(self, timer, settings_manager, clock):
        timer.start()
        settings_manager.update({"focus_duration": 5})
        clock.advance(10)
        snap = timer.snapshot()
        assert snap.total_duration_seconds == 60
        assert snap.remaining_seconds == 50


# ---------------------------------------------------------------------------
# pause / resume
# ---------------------------------------------------------------------------


class TestPauseResume:
    def test_pause_freezes_countdown(self, timer, clock):
        timer.start()
        clock.advance(10)
        assert timer.pause() is True
        assert clock.active_handles == []
        clock.advance(300)
        snap = timer.snapshot()
        assert snap.state == "paused"
        assert snap.remaining_seconds == 50

    def test_resume_continues_from_paused_point(self, timer, clock):
        timer.start()
        clock.advance(10)
        timer.pause()
        clock.advance(30)
        assert timer.resume() is True
        clock.advance(5)
        assert timer.snapshot().remaining_seconds == 45

    def test_only_running_time_counts(self, timer, clock):
        timer.start()
        for _ in range(4):
            clock.advance(5)
            timer.pause()
            clock.advance(17.5)
            timer.resume()
        assert timer.snapshot().remaining_seconds == 40

    def test_pause_and_resume_do_not_move_the_countdown(self, timer, clock):
        timer.start()
        clock.advance(10.5)
        before = timer.snapshot().remaining_seconds
        timer.pause()
        timer.resume()
        assert timer.snapshot().remaining_seconds == before

    def test_noops_in_wrong_states(self, timer):
        assert timer.pause() is False
        assert timer.resume() is False
        timer.start()
        assert timer.resume() is False
        timer.pause()
        assert timer.pause() is False
        assert timer.state == "paused"

    def test_pause_after_time_ran_out_completes_phase(self, timer, clock, session_log):
        timer.start()
        clock.advance(90, ticks=False)
        assert timer.pause() is False
        assert timer.state == "completed"
        [record] = session_log.all()
        assert record.was_interrupted is False
        assert record.duration_seconds == 60


# ---------------------------------------------------------------------------
# Natural completion
# ---------------------------------------------------------------------------


class TestCompletion:
    def test_default_settings_full_focus_scenario(self, session_log, clock):
        timer = FocusTimer(SettingsManager(FocusSettings()), session_log, clock=clock)
        timer.start("focus")
        clock.advance(25 * 60)

        [record] = session_log.all()
        assert record.type == "focus"
        assert record.duration_seconds == 1500
        assert record.was_interrupted is False
        snap = timer.snapshot()
        assert snap.state == "completed"
        assert snap.next_session_type == "short_break"

    def test_completed_snapshot(self, timer, clock):
        timer.start(intention="draft")
        clock.advance(60)
        snap = timer.snapshot()
        assert snap.session_type == "focus"
        assert snap.remaining_seconds == 0
        assert snap.progress == 1.0
        assert snap.intention == "draft"
        assert snap.completed_focus_sessions == 1
        assert clock.active_handles == []

    def test_record_timestamp_comes_from_clock(self, timer, clock, session_log):
        timer.start()
        clock.advance(60)
        assert session_log.all()[0].completed_at == clock.now()

    def test_exactly_one_record_per_completion(self, timer, clock, session_log):
        timer.start()
        clock.advance(60)
        timer.tick()
        clock.advance(30)
        assert session_log.count() == 1

    def test_tick_after_missed_ticks_completes_with_full_duration(self, timer, clock, session_log):
        timer.start()
        clock.advance(500, ticks=False)
        timer.tick()
        [record] = session_log.all()
        assert record.duration_seconds == 60
        assert record.was_interrupted is False

    def test_advance_moves_to_idle_with_next_phase(self, timer, clock):
        timer.start()
        clock.advance(60)
        assert timer.advance() is True
        snap = timer.snapshot()
        assert snap.state == "idle"
        assert snap.session_type == "short_break"
        assert snap.remaining_seconds == 60
        assert timer.advance() is False

    def test_start_from_completed_is_noop(self, timer, clock):
        timer.start()
        clock.advance(60)
        assert timer.start() is False

    def test_event_order(self, timer, clock):
        events = _collect(timer)
        timer.start()
        clock.advance(60)
        assert _kinds(events) == ["started", "phase_completed"]
        assert events[-1].record is not None


# ---------------------------------------------------------------------------
# Cadence through the timer
# ---------------------------------------------------------------------------


class TestCadence:
    def _finish_phase(self, timer, clock):
        timer.start()
        clock.advance(timer.snapshot().total_duration_seconds)
        timer.advance()

    def test_long_break_after_every_second_focus(self, timer, clock):
        phases = []
        for _ in range(8):
            phases.append(timer.snapshot().session_type)
            self._finish_phase(timer, clock)

        assert phases == [
            "focus",
            "short_break",
            "focus",
            "long_break",
            "focus",
            "short_break",
            "focus",
            "long_break",
        ]
        assert timer.completed_focus_sessions == 4

    def test_breaks_do_not_increment_focus_count(self, timer, clock):
        timer.start("short_break")
        clock.advance(60)
        assert timer.completed_focus_sessions == 0


# ---------------------------------------------------------------------------
# skip
# ---------------------------------------------------------------------------


class TestSkip:
    def test_skip_records_elapsed_time(self, session_log, clock):
        timer = FocusTimer(SettingsManager(FocusSettings()), session_log, clock=clock)
        timer.start("focus")
        clock.advance(600)
        assert timer.skip() is True

        [record] = session_log.all()
        assert record.type == "focus"
        assert record.duration_seconds == 600
        assert record.was_interrupted is True
        assert timer.completed_focus_sessions == 1

    def test_skip_lands_on_next_phase_idle(self, timer, clock):
        timer.start()
        clock.advance(10)
        timer.skip()
        snap = timer.snapshot()
        assert snap.state == "idle"
        assert snap.session_type == "short_break"
        assert clock.active_handles == []

    def test_skip_while_paused(self, timer, clock, session_log):
        timer.start()
        clock.advance(20)
        timer.pause()
        clock.advance(100)
        timer.skip()
        assert session_log.all()[0].duration_seconds == 20

    def test_skip_counts_toward_long_break(self, timer, clock):
        timer.start()
        timer.skip()
        timer.start()
        timer.skip()
        timer.start()
        timer.skip()
        assert timer.snapshot().session_type == "long_break"

    def test_skip_outside_running_is_noop(self, timer, session_log):
        assert timer.skip() is False
        assert session_log.count() == 0

    def test_skip_after_time_ran_out_logs_natural_completion(self, timer, clock, session_log):
        timer.start()
        clock.advance(75, ticks=False)
        assert timer.skip() is False
        [record] = session_log.all()
        assert record.was_interrupted is False
        assert timer.completed_focus_sessions == 1


# ---------------------------------------------------------------------------
# reset / navigate away
# ---------------------------------------------------------------------------


class TestReset:
    def test_reset_from_idle_logs_nothing(self, timer, session_log):
        assert timer.reset() is False
        assert session_log.count() == 0
        assert timer.state == "idle"

    def test_reset_while_running_logs_interrupted(self, timer, clock, session_log):
        timer.start(intention="read")
        clock.advance(12)
        assert timer.reset() is True

        [record] = session_log.all()
        assert record.was_interrupted is True
        assert record.duration_seconds == 12
        assert record.intention == "read"
        snap = timer.snapshot()
        assert snap.state == "idle"
        assert snap.session_type == "focus"
        assert snap.intention == ""
        assert clock.active_handles == []

    def test_reset_while_paused_logs_interrupted(self, timer, clock, session_log):
        timer.start()
        clock.advance(5)
        timer.pause()
        timer.reset()
        assert session_log.all()[0].duration_seconds == 5

    def test_reset_from_completed_logs_nothing_more(self, timer, clock, session_log):
        timer.start()
        clock.advance(60)
        timer.reset()
        assert session_log.count() == 1
        assert timer.snapshot().session_type == "focus"

    def test_reset_clears_cadence_counter(self, timer, clock):
        timer.start()
        clock.advance(60)
        timer.advance()
        assert timer.state == "idle"
        assert timer.reset() is False
        assert timer.completed_focus_sessions == 0

    def test_reset_mid_cycle_restarts_long_break_cadence(self, timer, clock):
        timer.start()
        timer.skip()
        timer.start()
        clock.advance(10)
        timer.reset()
        assert timer.snapshot().completed_focus_sessions == 0

        timer.start()
        timer.skip()
        assert timer.snapshot().session_type == "short_break"

    def test_reset_preselects_focus_after_skip_to_break(self, timer):
        timer.start()
        timer.skip()
        assert timer.snapshot().session_type == "short_break"
        timer.reset()
        assert timer.snapshot().session_type == "focus"

    def test_navigate_away_is_reset(self, timer, clock, session_log):
        timer.start()
        clock.advance(3)
        assert timer.navigate_away() is True
        assert session_log.all()[0].was_interrupted is True

    def test_reset_event_carries_record(self, timer, clock):
        events = _collect(timer)
        timer.start()
        clock.advance(3)
        timer.reset()
        assert events[-1].kind == "reset"
        assert events[-1].record is not None


# ---------------------------------------------------------------------------
# Auto-start
# ---------------------------------------------------------------------------


class TestAutoStart:
    def test_auto_start_breaks(self, timer, settings_manager, clock, session_log):
        settings_manager.update({"auto_start_breaks": True})
        events = _collect(timer)
        timer.start()
        clock.advance(60)

        snap = timer.snapshot()
        assert snap.state == "running"
        assert snap.session_type == "short_break"
        assert _kinds(events) == ["started", "phase_completed", "idle", "started"]
        assert session_log.count() == 1

    def test_auto_start_focus_after_break(self, timer, settings_manager, clock):
        settings_manager.update({"auto_start_focus": True})
        timer.start("short_break")
        clock.advance(60)
        assert timer.snapshot().state == "running"
        assert timer.snapshot().session_type == "focus"

    def test_no_auto_start_without_setting(self, timer, clock):
        timer.start()
        clock.advance(60)
        assert timer.state == "completed"

    def test_skip_never_auto_starts(self, timer, settings_manager):
        settings_manager.update({"auto_start_breaks": True})
        timer.start()
        timer.skip()
        assert timer.state == "idle"


# ---------------------------------------------------------------------------
# Subscribers
# ---------------------------------------------------------------------------


class TestSubscribers:
    def test_unsubscribe(self, timer):
        events = []
        unsubscribe = timer.subscribe(events.append)
        timer.start()
        unsubscribe()
        timer.pause()
        assert _kinds(events) == ["started"]

    def test_failing_subscriber_does_not_break_others(self, timer, clock):
        def broken(event):
            raise RuntimeError("subscriber bug")

        timer.subscribe(broken)
        events = _collect(timer)
        timer.start()
        clock.advance(60)
        assert timer.state == "completed"
        assert "phase_completed" in _kinds(events)

    def test_subscriber_limit(self, session_log, settings_manager, clock):
        timer = FocusTimer(settings_manager, session_log, clock=clock, max_subscribers=2)
        timer.subscribe(lambda e: None)
        timer.subscribe(lambda e: None)
        with pytest.raises(ValueError):
            timer.subscribe(lambda e: None)

    def test_record_is_persisted_before_notification(self, timer, clock, session_log):
        counts = []

        def on_event(event):
            if event.kind == "phase_completed":
                counts.append(session_log.count())

        timer.subscribe(on_event)
        timer.start()
        clock.advance(60)
        assert counts == [1]

    def test_subscriber_may_drive_timer(self, timer, clock):
        def restart(event):
            if event.kind == "phase_completed":
                timer.advance()
                timer.start()

        timer.subscribe(restart)
        timer.start()
        clock.advance(60)
        assert timer.snapshot().session_type == "short_break"
        assert timer.state == "running"


# ---------------------------------------------------------------------------
# Persistence failures
# ---------------------------------------------------------------------------


class TestPersistenceFailure:
    def _failing_log(self):
        log = MagicMock()
        log.append.side_effect = PersistenceError("disk full")
        return log

    def test_failure_does_not_change_timer_state(self, settings_manager, clock):
        timer = FocusTimer(settings_manager, self._failing_log(), clock=clock)
        events = _collect(timer)
        timer.start()
        clock.advance(60)

        assert timer.state == "completed"
        assert len(timer.pending_records) == 1
        assert timer.snapshot().pending_records == 1
        failed = [e for e in events if e.kind == "persistence_failed"]
        assert len(failed) == 1
        assert isinstance(failed[0].error, PersistenceError)

    def test_retry_pending_saves_records(self, settings_manager, clock, tmp_path):
        log = self._failing_log()
        timer = FocusTimer(settings_manager, log, clock=clock)
        timer.start()
        timer.skip()
        timer.start()
        timer.skip()
        assert len(timer.pending_records) == 2

        real_log = SessionLog(tmp_path / "retry.db")
        log.append.side_effect = real_log.append
        assert timer.retry_pending() == 2
        assert timer.pending_records == []
        assert [r.type for r in real_log.all()] == ["focus", "short_break"]

    def test_retry_keeps_order_on_partial_failure(self, settings_manager, clock):
        log = self._failing_log()
        timer = FocusTimer(settings_manager, log, clock=clock)
        timer.start()
        timer.skip()
        timer.start()
        timer.skip()
        first, second = timer.pending_records

        log.append.side_effect = [None, PersistenceError("still full")]
        assert timer.retry_pending() == 1
        assert timer.pending_records == [second]
        assert log.append.call_args_list[-2].args == (first,)


# ---------------------------------------------------------------------------
# Threads
# ---------------------------------------------------------------------------


class FastClock(SystemClock):
    """SystemClock running SPEED times faster; a one-minute phase lasts 0.1s."""

    SPEED = 600

    def __init__(self):
        self._origin = time.monotonic()
        self._wall_origin = datetime.now().astimezone()

    def monotonic(self) -> float:
        return (time.monotonic() - self._origin) * self.SPEED

    def now(self) -> datetime:
        return self._wall_origin + timedelta(seconds=self.monotonic())

    def schedule_tick(self, interval_ms, callback):
        return super().schedule_tick(max(1, interval_ms // self.SPEED), callback)


class BlockingLog:
    """Holds the first append until ``release`` is set."""

    def __init__(self, log: SessionLog):
        self.log = log
        self.entered = threading.Event()
        self.release = threading.Event()
        self._first = True

    def append(self, record):
        if self._first:
            self._first = False
            self.entered.set()
            assert self.release.wait(5)
        self.log.append(record)


def _join_tickers():
    for thread in threading.enumerate():
        if thread.name == "timelens-ticker":
            thread.join(timeout=2)


class TestThreading:
    def test_concurrent_start_runs_one_phase(self, timer, clock):
        barrier = threading.Barrier(8)
        results: list[bool] = []

        def press_start():
            barrier.wait()
            results.append(timer.start())

        threads = [threading.Thread(target=press_start) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert results.count(True) == 1
        assert results.count(False) == 7
        assert len(clock.active_handles) == 1

    def test_records_saved_in_completion_order(self, session_log, clock):
        settings = SettingsManager(
            FocusSettings(
                focus_duration=1,
                short_break_duration=1,
                long_break_duration=2,
                sessions_before_long_break=2,
                auto_start_breaks=True,
            )
        )
        log = BlockingLog(session_log)
        timer = FocusTimer(settings, log, clock=clock)
        timer.start()

        # The focus record is held in the log while the auto-started break
        # is skipped from another thread
        completer = threading.Thread(target=clock.advance, args=(60,))
        completer.start()
        assert log.entered.wait(5)
        clock.advance(10, ticks=False)

        skipped: list[bool] = []
        skipper = threading.Thread(target=lambda: skipped.append(timer.skip()))
        skipper.start()
        deadline = time.monotonic() + 5
        while timer.state != "idle" and time.monotonic() < deadline:
            time.sleep(0.001)

        log.release.set()
        completer.join(timeout=5)
        skipper.join(timeout=5)

        assert skipped == [True]
        assert [r.type for r in session_log.all()] == ["focus", "short_break"]
        assert [r.was_interrupted for r in session_log.all()] == [False, True]

    def test_ticks_racing_transitions(self, session_log):
        settings = SettingsManager(
            FocusSettings(
                focus_duration=1,
                short_break_duration=1,
                long_break_duration=2,
                sessions_before_long_break=2,
                auto_start_breaks=True,
                auto_start_focus=True,
            )
        )
        timer = FocusTimer(settings, session_log, clock=FastClock())
        events = _collect(timer)
        stop = threading.Event()

        def user(actions, pause):
            while not stop.is_set():
                for action in actions:
                    action()
                    time.sleep(pause)

        timer.start()
        users = [
            threading.Thread(target=user, args=([timer.pause, timer.resume], 0.003)),
            threading.Thread(target=user, args=([timer.skip, timer.start], 0.02)),
            threading.Thread(target=user, args=([timer.reset, timer.start], 0.05)),
        ]
        for thread in users:
            thread.start()
        time.sleep(0.6)
        stop.set()
        for thread in users:
            thread.join(timeout=5)
        timer.reset()
        _join_tickers()

        saved = session_log.all()
        logged = [
            e.record
            for e in events
            if e.kind in ("phase_completed", "reset") and e.record is not None
        ]
        assert saved
        assert not [e for e in events if e.kind == "persistence_failed"]
        assert len(saved) == len(logged)
        assert {r.id for r in saved} == {r.id for r in logged}
        assert len({r.id for r in saved}) == len(saved)
        stamps = [r.completed_at for r in saved]
        assert stamps == sorted(stamps)
        for event in events:
            snap = event.snapshot
            assert 0 <= snap.remaining_seconds <= snap.total_duration_seconds
        assert timer.state == "idle"
