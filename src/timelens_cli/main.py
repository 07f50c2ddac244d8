"""Main entry point for TimeLens CLI."""

import asyncio

import httpx
import typer

from timelens_cli import __version__
from timelens_cli.commands import focus, sync
from timelens_cli.services.api.client import get_client
from timelens_cli.services.config_service import get_config_service
from timelens_cli.services.sync_service import STATS_PATH
from timelens_cli.utils.exit_codes import ERROR_NETWORK
from timelens_cli.utils.logger import get_logger
from timelens_cli.utils.typer_helpers import SuggestingGroup
from timelens_cli.utils.ui.console import get_console

app = typer.Typer(
    name="timelens",
    cls=SuggestingGroup,
    help="Pomodoro focus timer with session history and stats",
    no_args_is_help=True,
)

console = get_console()


@app.callback()
def main_callback() -> None:
    """Pomodoro focus timer with session history and stats."""
    get_logger()


# Add subcommands
app.add_typer(focus.app, name="focus", help="Focus timer, stats and history")
app.add_typer(sync.app, name="sync", help="Sync sessions with the TimeLens API")


@app.command()
def version(
    check_api: bool = typer.Option(
        False, "--check-api", help="Also check that the API is reachable"
    ),
) -> None:
    """Show version information."""
    console.print(f"[bold]TimeLens CLI[/bold] version [cyan]{__version__}[/cyan]")

    if not check_api:
        return

    if not get_config_service().load_credentials():
        console.print("[yellow]Not logged in - unable to check API health[/yellow]")
        return

    async def check_health():
        async with get_client() as client:
            await client.get(STATS_PATH)

    try:
        asyncio.run(check_health())
    except httpx.HTTPError as e:
        console.print(f"[red]✗ API health check failed: {e}[/red]")
        raise typer.Exit(ERROR_NETWORK) from e
    console.print("[green]✓ API is healthy[/green]")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
