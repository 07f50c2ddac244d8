"""Custom exceptions for the TimeLens focus engine."""


class TimeLensError(Exception):
    """Base exception for all TimeLens errors."""


class ConfigValidationError(TimeLensError):
    """Raised when a settings update is rejected. Prior settings are kept."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class PersistenceError(TimeLensError):
    """Raised when a record or settings cannot be stored or loaded.

    Recoverable: the timer keeps running in memory and the write can be retried.
    """


class SyncError(TimeLensError):
    """Raised when the remote focus API cannot be reached or rejects a request."""
