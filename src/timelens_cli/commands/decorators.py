"""Decorators for command functions."""

import asyncio
import functools
import time
import traceback
from collections.abc import Callable

import typer

from timelens_cli.models.focus.exceptions import TimeLensError
from timelens_cli.services.config_service import get_config_service
from timelens_cli.utils.exit_codes import ERROR_AUTH_FAILURE, exit_code_for
from timelens_cli.utils.logger import get_logger
from timelens_cli.utils.ui.console import print_error


def _require_auth() -> None:
    """Require a stored API token."""
    if not get_config_service().load_credentials():
        print_error("Not logged in. Use 'timelens sync login --token <token>'.")
        raise typer.Exit(ERROR_AUTH_FAILURE)


def command_wrapper(_func: Callable | None = None, *, auth_required: bool = False):
    """Decorator to wrap command functions with common functionality."""

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger()
            cmd = func.__name__
            start = time.monotonic()
            logger.info("command started: %s", cmd)
            try:
                if auth_required:
                    _require_auth()

                if asyncio.iscoroutinefunction(func):
                    result = asyncio.run(func(*args, **kwargs))
                else:
                    result = func(*args, **kwargs)

                elapsed = time.monotonic() - start
                logger.info("command completed: %s (%.3fs)", cmd, elapsed)
                return result

            except TimeLensError as e:
                elapsed = time.monotonic() - start
                logger.error("command failed: %s (%.3fs) - %s", cmd, elapsed, e)
                print_error(str(e))
                raise typer.Exit(code=exit_code_for(e)) from e

            except typer.Exit:
                # Re-raise Typer's own exits (like --help or explicit Exit(0))
                raise

            except Exception as e:
                elapsed = time.monotonic() - start
                logger.error(
                    "command failed: %s (%.3fs) - %s\n%s",
                    cmd,
                    elapsed,
                    str(e),
                    traceback.format_exc(),
                )
                print_error(f"An unexpected error occurred: {e}")
                raise typer.Exit(code=exit_code_for(e)) from e

        return wrapper

    if _func is None:
        return decorator
    return decorator(_func)
