"""Services module for TimeLens CLI - Business logic layer."""

from .config_service import ConfigService, get_config_service
from .focus_service import FocusService, get_focus_service
from .sync_service import FocusSyncService, SyncResult
from .sync_state import SyncState

__all__ = [
    "ConfigService",
    "FocusService",
    "FocusSyncService",
    "SyncResult",
    "SyncState",
    "get_config_service",
    "get_focus_service",
]
