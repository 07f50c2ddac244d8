"""Focus mode commands with fullscreen Pomodoro timer."""

from typing import Any

import typer
from rich.prompt import Confirm
from rich.table import Table

from timelens_cli.commands.decorators import command_wrapper
from timelens_cli.models.focus.exceptions import ConfigValidationError
from timelens_cli.models.focus.history import SessionRecord
from timelens_cli.models.focus.state import from_wire_type
from timelens_cli.models.focus.stats import daily_focus_minutes
from timelens_cli.models.focus.timer import TimerEvent
from timelens_cli.models.focus.ui import (
    SESSION_LABELS,
    TimerDisplay,
    format_clock,
    show_record_summary,
    show_stats,
)
from timelens_cli.services.focus_service import get_focus_service
from timelens_cli.utils.exit_codes import ERROR_INVALID_ARGS
from timelens_cli.utils.ui.console import get_console, print_error

console = get_console()
app = typer.Typer(help="Focus mode with Pomodoro timer")
settings_app = typer.Typer(help="Show or change timer settings")
app.add_typer(settings_app, name="settings")

SYNC_WAIT_SECONDS = 10.0

_TRUE_WORDS = {"true", "yes", "on"}
_FALSE_WORDS = {"false", "no", "off"}


def _parse_session_type(value: str | None):
    if value is None:
        return None
    try:
        return from_wire_type(value.replace("-", "_"))
    except ValueError as e:
        print_error(f"Unknown session type '{value}'. Use focus, short_break or long_break.")
        raise typer.Exit(ERROR_INVALID_ARGS) from e


@app.command("start")
@command_wrapper
def start_focus(
    session_type: str = typer.Option(
        None, "--type", "-t", help="Phase to start (focus, short_break, long_break)"
    ),
    intention: str = typer.Option(
        None, "--intention", "-i", help="What you want to get done (max 100 chars)"
    ),
    cycles: int = typer.Option(
        None, "--cycles", "-c", min=1, help="Keep going until N focus phases finish"
    ),
):
    """Start the focus timer."""
    phase = _parse_session_type(session_type)
    service = get_focus_service()
    timer = service.timer

    records: list[SessionRecord] = []
    progress = {"phases": 0, "focus": 0}

    def on_event(event: TimerEvent) -> None:
        if event.kind == "phase_completed" and event.record is not None:
            progress["phases"] += 1
            if event.record.type == "focus":
                progress["focus"] += 1
        if event.record is not None and event.kind in ("phase_completed", "reset"):
            records.append(event.record)

    def should_stop() -> bool:
        if timer.state in ("running", "paused"):
            return False
        if cycles is None:
            return progress["phases"] >= 1
        return progress["focus"] >= cycles

    unsubscribe = timer.subscribe(on_event)
    try:
        timer.start(phase, intention)
        display = TimerDisplay(console)
        outcome = display.run(
            timer,
            should_stop,
            cycle_dots=lambda: timer.cycle.progress_dots(service.settings),
        )
        if outcome != "finished":
            timer.navigate_away()
    finally:
        unsubscribe()
        timer.shutdown()

    for record in records:
        show_record_summary(record, console)

    if timer.pending_records:
        saved = timer.retry_pending()
        left = len(timer.pending_records)
        if left:
            console.print(
                f"[yellow]Could not save {left} session(s); see the log for details[/yellow]"
            )
        elif saved:
            console.print(f"[dim]Saved {saved} session(s) on retry[/dim]")

    service.wait_for_sync(SYNC_WAIT_SECONDS)

    stats = service.stats()
    console.print(
        f"[dim]Today: {stats.today_sessions} focus sessions, "
        f"{stats.today_minutes} min · streak {stats.current_streak}[/dim]"
    )


@app.command("stats")
@command_wrapper
def focus_stats(
    as_json: bool = typer.Option(False, "--json", help="Print stats as JSON"),
    days: int = typer.Option(7, "--days", "-d", min=1, max=90, help="Days in the chart"),
):
    """Show focus stats and streak."""
    service = get_focus_service()
    stats = service.stats()

    if as_json:
        console.print_json(data=stats.to_dict())
        return

    show_stats(stats, console)

    now = service.timer.clock.now()
    daily = daily_focus_minutes(service.session_log.all(), now.date(), days, now.tzinfo)
    peak = max((minutes for _, minutes in daily), default=0)

    table = Table(title=f"Last {days} days", show_header=True)
    table.add_column("Day", style="cyan")
    table.add_column("Minutes", justify="right")
    table.add_column("")
    for day, minutes in daily:
        bar = "█" * (round(20 * minutes / peak) if peak else 0)
        table.add_row(day.strftime("%a %d %b"), str(minutes), f"[green]{bar}[/green]")
    console.print(table)


@app.command("history")
@command_wrapper
def focus_history(
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Number of sessions"),
    session_type: str = typer.Option(None, "--type", "-t", help="Filter by phase"),
):
    """List recent sessions, newest first."""
    phase = _parse_session_type(session_type)
    records = get_focus_service().recent(limit, phase)

    if not records:
        console.print("[dim]No sessions recorded yet[/dim]")
        return

    table = Table(show_header=True)
    table.add_column("Finished", style="cyan")
    table.add_column("Type")
    table.add_column("Time", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Intention", style="dim")

    for record in records:
        status = "[yellow]stopped[/yellow]" if record.was_interrupted else "[green]✓[/green]"
        table.add_row(
            record.completed_at.strftime("%Y-%m-%d %H:%M"),
            SESSION_LABELS[record.type],
            format_clock(record.duration_seconds),
            status,
            record.intention,
        )

    console.print(table)


def _parse_value(raw: str) -> Any:
    lowered = raw.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    try:
        return int(lowered)
    except ValueError:
        return raw


def _parse_assignments(pairs: list[str]) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            print_error(f"Expected KEY=VALUE, got '{pair}'")
            raise typer.Exit(ERROR_INVALID_ARGS)
        updates[key.strip().replace("-", "_")] = _parse_value(value)
    return updates


def _print_settings() -> None:
    settings = get_focus_service().settings

    table = Table(show_header=True, title="Focus settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in settings.model_dump().items():
        table.add_row(key, str(value).lower() if isinstance(value, bool) else str(value))
    console.print(table)


@settings_app.command("show")
@command_wrapper
def settings_show():
    """Show the current timer settings."""
    _print_settings()


@settings_app.command("set")
@command_wrapper
def settings_set(
    pairs: list[str] = typer.Argument(
        ..., help="KEY=VALUE pairs, e.g. focus_duration=50 auto_start_breaks=true"
    ),
):
    """Change one or more settings. Nothing changes if any value is invalid."""
    updates = _parse_assignments(pairs)
    try:
        get_focus_service().update_settings(updates)
    except ConfigValidationError as e:
        for error in e.errors:
            print_error(f"{error['field']}: {error['message']}")
        raise typer.Exit(ERROR_INVALID_ARGS) from e

    console.print("[green]✓ Settings updated[/green]")
    _print_settings()


@settings_app.command("reset")
@command_wrapper
def settings_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Restore default timer settings."""
    if not yes and not Confirm.ask("Reset focus settings to defaults?", default=False):
        console.print("[dim]Cancelled[/dim]")
        return

    get_focus_service().reset_settings()
    console.print("[green]✓ Settings reset to defaults[/green]")
    _print_settings()
