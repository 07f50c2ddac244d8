"""Typer helper utilities."""

from difflib import get_close_matches

import typer
from typer.core import TyperGroup

from timelens_cli.utils.exit_codes import ERROR_INVALID_ARGS
from timelens_cli.utils.ui.console import get_console

MAX_SUGGESTIONS = 3
SIMILARITY_CUTOFF = 0.6


def suggest_commands(attempted: str, group: TyperGroup) -> list[str]:
    """Visible subcommand names of ``group`` that look like ``attempted``."""
    visible = [
        name
        for name, cmd in group.commands.items()
        if not getattr(cmd, "hidden", False)
    ]
    return get_close_matches(
        attempted.lower(), visible, n=MAX_SUGGESTIONS, cutoff=SIMILARITY_CUTOFF
    )


class SuggestingGroup(TyperGroup):
    """Typer group that answers a mistyped command with close matches."""

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except Exception as e:
            suggestions = suggest_commands(args[0], self) if args else []
            if not suggestions:
                raise

            console = get_console()
            console.print(
                f'[red]Error:[/red] unknown command "{args[0]}" for "{ctx.info_name}"'
            )
            console.print()
            heading = (
                "Did you mean this?" if len(suggestions) == 1 else "Did you mean one of these?"
            )
            console.print(f"[yellow]{heading}[/yellow]")
            for suggestion in suggestions:
                console.print(f"        {suggestion}")
            raise typer.Exit(ERROR_INVALID_ARGS) from e
