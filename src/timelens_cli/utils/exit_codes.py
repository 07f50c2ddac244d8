"""
Exit codes for TimeLens CLI.

Semantic exit codes let scripts tell a bad argument from an unreachable
server or an unwritable data directory.
"""

from timelens_cli.models.focus.exceptions import (
    ConfigValidationError,
    PersistenceError,
    SyncError,
)

# Success
SUCCESS = 0

# General error (unspecified)
ERROR_GENERAL = 1

# Invalid arguments or validation error
ERROR_INVALID_ARGS = 2

# Authentication failure (no stored token, token rejected)
ERROR_AUTH_FAILURE = 3

# Network or API error (server unreachable, timeout, etc.)
ERROR_NETWORK = 4

# Local storage could not be read or written
ERROR_PERSISTENCE = 5


def get_exit_code_name(code: int) -> str:
    """Get the name of an exit code for display purposes."""
    code_names = {
        SUCCESS: "SUCCESS",
        ERROR_GENERAL: "ERROR_GENERAL",
        ERROR_INVALID_ARGS: "ERROR_INVALID_ARGS",
        ERROR_AUTH_FAILURE: "ERROR_AUTH_FAILURE",
        ERROR_NETWORK: "ERROR_NETWORK",
        ERROR_PERSISTENCE: "ERROR_PERSISTENCE",
    }
    return code_names.get(code, f"UNKNOWN({code})")


def exit_code_for(error: Exception) -> int:
    """Map an application error to its exit code."""
    if isinstance(error, (ConfigValidationError, ValueError)):
        return ERROR_INVALID_ARGS
    if isinstance(error, SyncError):
        return ERROR_NETWORK
    if isinstance(error, PersistenceError):
        return ERROR_PERSISTENCE
    return ERROR_GENERAL
