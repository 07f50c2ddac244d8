"""Full-screen timer UI for focus mode."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Literal

from rich.align import Align
from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from .history import SessionRecord
from .keyboard import apply_key, get_keyboard_handler
from .stats import FocusStats
from .timer import FocusTimer, TimerSnapshot

RunOutcome = Literal["finished", "quit", "interrupted"]

SESSION_LABELS = {
    "focus": "Focus",
    "short_break": "Short Break",
    "long_break": "Long Break",
}

SESSION_COLORS = {
    "focus": "cyan",
    "short_break": "green",
    "long_break": "magenta",
}

REFRESH_SECONDS = 0.25


def format_clock(seconds: int) -> str:
    """MM:SS, clamped at zero."""
    seconds = max(0, seconds)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def progress_bar(progress: float, width: int = 40) -> str:
    filled = int(width * min(1.0, max(0.0, progress)))
    return "▓" * filled + "░" * (width - filled)


class TimerDisplay:
    """Renders timer snapshots and drives the keyboard loop."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def create_layout(self, snapshot: TimerSnapshot, cycle_dots: str = "") -> Layout:
        """Create the timer layout with all components."""
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=3),
        )

        label = SESSION_LABELS[snapshot.session_type]
        if snapshot.state == "paused":
            title, color = f"⏸  PAUSED · {label}", "yellow"
        elif snapshot.state == "completed":
            title, color = f"✓  {label} complete", "green"
        elif snapshot.state == "idle":
            title, color = f"Ready · {label}", "dim"
        else:
            title, color = f"🍅  {label}", SESSION_COLORS[snapshot.session_type]

        header_text = Text(title, style=f"bold {color}", justify="center")
        layout["header"].update(Align.center(header_text, vertical="middle"))

        body = self._create_body_content(snapshot, cycle_dots)
        layout["body"].update(Align.center(body, vertical="middle"))

        layout["footer"].update(
            Align.center(self._create_footer_text(snapshot), vertical="middle")
        )
        return layout

    def _create_body_content(self, snapshot: TimerSnapshot, cycle_dots: str) -> Group:
        components = []

        if snapshot.intention:
            components.append(
                Text(snapshot.intention, style="bold white", justify="center")
            )
            components.append(Text(""))

        remaining = snapshot.remaining_seconds
        if snapshot.state == "paused":
            timer_color = "yellow"
        elif snapshot.state == "running" and remaining < 60:
            timer_color = "red"
        else:
            timer_color = SESSION_COLORS[snapshot.session_type]

        components.append(
            Text(format_clock(remaining), style=f"bold {timer_color}", justify="center")
        )
        components.append(Text(""))

        percent = int(snapshot.progress * 100)
        components.append(
            Text(
                f"{progress_bar(snapshot.progress)}  {percent}%",
                style="dim",
                justify="center",
            )
        )

        if cycle_dots:
            components.append(Text(""))
            components.append(Text(cycle_dots, style="cyan", justify="center"))

        if snapshot.state in ("completed", "idle"):
            components.append(Text(""))
            components.append(
                Text(
                    f"Up next: {SESSION_LABELS[snapshot.next_session_type]}",
                    style="dim",
                    justify="center",
                )
            )

        if snapshot.pending_records:
            components.append(
                Text(
                    f"{snapshot.pending_records} session(s) not saved yet",
                    style="red dim",
                    justify="center",
                )
            )

        return Group(*components)

    def _create_footer_text(self, snapshot: TimerSnapshot) -> Text:
        """Create footer with keyboard hints."""
        if snapshot.state == "paused":
            hints = "'r' resume  •  's' skip  •  'q' quit"
        elif snapshot.state == "running":
            hints = "'p' pause  •  's' skip  •  'q' quit"
        else:
            hints = "'n' start next  •  'q' quit"
        return Text(hints, style="dim", justify="center")

    def run(
        self,
        timer: FocusTimer,
        should_stop: Callable[[], bool],
        cycle_dots: Callable[[], str] | None = None,
    ) -> RunOutcome:
        """
        Show the live timer until ``should_stop`` is true or the user quits.

        The timer ticks on its own clock; this loop only polls keys and
        redraws.
        """
        keyboard = get_keyboard_handler()

        def render() -> Layout:
            dots = cycle_dots() if cycle_dots else ""
            return self.create_layout(timer.snapshot(), dots)

        try:
            with Live(
                render(),
                console=self.console,
                refresh_per_second=4,
                screen=True,
            ) as live:
                while not should_stop():
                    if apply_key(timer, keyboard.get_key()) == "quit":
                        return "quit"

                    live.update(render())
                    time.sleep(REFRESH_SECONDS)

                live.update(render())
            return "finished"
        except KeyboardInterrupt:
            return "interrupted"
        finally:
            keyboard.stop()


def show_record_summary(record: SessionRecord, console: Console | None = None) -> None:
    """Print a panel describing a finished or abandoned phase."""
    console = console or Console()

    label = SESSION_LABELS[record.type]
    if record.was_interrupted:
        heading = f"[yellow]{label} stopped early[/yellow]"
        border = "yellow"
    else:
        heading = f"[bold green]🎉 {label} complete![/bold green]"
        border = "green"

    lines = [heading, ""]
    if record.intention:
        lines.append(f"Intention: {record.intention}")
    lines.append(f"Time: {format_clock(record.duration_seconds)}")
    lines.append(f"Finished: {record.completed_at.strftime('%I:%M %p')}")

    console.print(Panel("\n".join(lines), border_style=border, padding=(1, 2)))


def show_stats(stats: FocusStats, console: Console | None = None) -> None:
    """Print today's focus stats."""
    console = console or Console()

    streak = f"{stats.current_streak} day{'s' if stats.current_streak != 1 else ''}"
    panel = Panel(
        f"""[bold cyan]Today[/bold cyan]
Sessions: {stats.today_sessions} ({stats.completed_sessions} completed)
Focus time: {stats.today_minutes} min

[bold cyan]Streak[/bold cyan]
Current: {streak}
Longest: {stats.longest_streak} days

[bold cyan]All time[/bold cyan]
Sessions: {stats.total_sessions}
Focus time: {stats.total_focus_minutes} min""",
        title="Focus Stats",
        border_style="cyan",
        padding=(1, 2),
    )
    console.print(panel)
