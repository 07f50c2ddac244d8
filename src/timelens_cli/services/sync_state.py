"""Sync state for pushing focus sessions to the remote API.

Tracks which session records have been pushed and when each direction last
synced. State is persisted as ``sync-state.json`` in the data directory.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

Direction = Literal["push", "pull"]


class SyncState:
    """Manages sync state persistence."""

    def __init__(self, state_dir: Path | None = None):
        """Initialize sync state manager.

        Args:
            state_dir: Directory for sync-state.json. Defaults to the user data dir
        """
        if state_dir is None:
            from platformdirs import user_data_dir

            state_dir = Path(user_data_dir("timelens_cli"))

        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / "sync-state.json"
        self._state: dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        """Load sync state from file."""
        empty = {"pushed": [], "last_sync": {}}
        if not self.state_file.exists():
            self._state = empty
            return

        try:
            with open(self.state_file, encoding="utf-8") as f:
                self._state = json.load(f) or empty
        except (json.JSONDecodeError, OSError):
            # If file is corrupted, start fresh
            logger.warning("Sync state unreadable, starting fresh")
            self._state = empty

        self._state.setdefault("pushed", [])
        self._state.setdefault("last_sync", {})

    def _save(self) -> None:
        """Save sync state to file."""
        self.state_dir.mkdir(parents=True, exist_ok=True)

        with open(self.state_file, "w", encoding="utf-8") as f:
            json.dump(self._state, f, indent=2)

    def is_pushed(self, record_id: str) -> bool:
        return record_id in self._state["pushed"]

    def mark_pushed(self, record_id: str) -> None:
        """Remember that a record reached the remote store."""
        if record_id not in self._state["pushed"]:
            self._state["pushed"].append(record_id)
            self._save()

    @property
    def pushed_count(self) -> int:
        return len(self._state["pushed"])

    def get_last_sync(self, direction: Direction) -> datetime | None:
        """Get last sync timestamp for a direction, as aware UTC."""
        timestamp_str = self._state["last_sync"].get(direction)
        if timestamp_str is None:
            return None

        dt = datetime.fromisoformat(timestamp_str.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            return dt.replace(tzinfo=UTC)
        return dt

    def set_last_sync(
        self, direction: Direction, timestamp: datetime | None = None
    ) -> None:
        """Set last sync timestamp for a direction. Defaults to now."""
        if timestamp is None:
            timestamp = datetime.now(UTC)

        self._state["last_sync"][direction] = timestamp.astimezone(UTC).isoformat()
        self._save()
