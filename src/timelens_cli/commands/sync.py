"""Sync commands for TimeLens CLI.

Pushes local focus sessions to the TimeLens API and restores them from it.
"""

import typer
from rich.table import Table

from timelens_cli.commands.decorators import command_wrapper
from timelens_cli.models.focus.history import SessionLog
from timelens_cli.models.focus.ui import show_stats
from timelens_cli.services.api.client import get_client
from timelens_cli.services.config_service import get_config_service
from timelens_cli.services.sync_service import FocusSyncService, SyncResult
from timelens_cli.services.sync_state import SyncState
from timelens_cli.utils.exit_codes import ERROR_NETWORK
from timelens_cli.utils.ui.console import get_console

app = typer.Typer(help="Sync focus sessions with the TimeLens API")
console = get_console()


def _local_stores() -> tuple[SessionLog, SyncState]:
    config_service = get_config_service()
    return (
        SessionLog(config_service.session_db_path),
        SyncState(config_service.data_dir),
    )


def _print_result(action: str, result: SyncResult) -> None:
    console.print(f"\n[bold]{action} finished in {result.duration:.2f}s[/bold]")
    if result.fetched:
        console.print(f"  Fetched:  {result.fetched}")
    if result.pushed:
        console.print(f"  Pushed:   [green]{result.pushed}[/green]")
    if result.restored:
        console.print(f"  Restored: [green]{result.restored}[/green]")
    if result.skipped:
        console.print(f"  Skipped:  [dim]{result.skipped}[/dim]")
    if result.failed:
        console.print(f"  Failed:   [red]{result.failed}[/red]")
        for error in result.errors:
            console.print(f"    [red]•[/red] {error}")


@app.command("login")
@command_wrapper
def login_command(
    token: str = typer.Option(
        ..., "--token", prompt=True, hide_input=True, help="API access token"
    ),
    endpoint: str = typer.Option(None, "--endpoint", help="API base URL"),
):
    """Store the API token used for sync."""
    config_service = get_config_service()
    if endpoint:
        config_service.config.api.endpoint = endpoint.strip().rstrip("/")
        config_service.save_config()

    config_service.save_credentials(token.strip())
    console.print(
        f"[green]✓ Logged in to {config_service.config.api.endpoint}[/green]"
    )


@app.command("logout")
@command_wrapper
def logout_command():
    """Remove the stored API token."""
    get_config_service().clear_credentials()
    console.print("[green]✓ Logged out[/green]")


@app.command("push")
@command_wrapper(auth_required=True)
async def push_command():
    """Push local sessions the server has not seen yet."""
    session_log, sync_state = _local_stores()

    async with get_client() as client:
        result = await FocusSyncService(client).push_pending(session_log, sync_state)

    _print_result("Push", result)
    if not result.success:
        raise typer.Exit(ERROR_NETWORK)


@app.command("pull")
@command_wrapper(auth_required=True)
async def pull_command(
    limit: int = typer.Option(
        None, "--limit", "-n", min=1, help="Number of remote sessions to fetch"
    ),
):
    """Restore remote sessions missing from the local history."""
    if limit is None:
        limit = get_config_service().config.sync.restore_limit
    session_log, sync_state = _local_stores()

    async with get_client() as client:
        result = await FocusSyncService(client).restore(session_log, sync_state, limit)

    _print_result("Pull", result)


@app.command("stats")
@command_wrapper(auth_required=True)
async def remote_stats_command():
    """Show stats computed by the server."""
    async with get_client() as client:
        stats = await FocusSyncService(client).fetch_remote_stats()

    show_stats(stats, console)


@app.command("status")
@command_wrapper
def status_command():
    """Show what has been synced and when."""
    session_log, sync_state = _local_stores()

    table = Table(show_header=False, title="Sync status")
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for direction in ("push", "pull"):
        last = sync_state.get_last_sync(direction)
        table.add_row(
            f"Last {direction}",
            last.astimezone().strftime("%Y-%m-%d %H:%M") if last else "never",
        )
    table.add_row("Local sessions", str(session_log.count()))
    table.add_row("Synced sessions", str(sync_state.pushed_count))
    table.add_row("Auto sync", "on" if get_config_service().config.sync.auto else "off")

    console.print(table)
