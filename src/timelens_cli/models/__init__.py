"""TimeLens CLI domain models.

Pydantic configuration models plus the focus session engine in
``timelens_cli.models.focus``.
"""

from .config_models import APIConfig, AppConfig, SyncConfig

__all__ = [
    "APIConfig",
    "AppConfig",
    "SyncConfig",
]
