"""Sync service pushing focus sessions to, and restoring them from, the remote API.

The remote store is a collaborator: every failure here is reported as a
SyncError and never touches the local timer or session log contents.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from timelens_cli.models.focus.exceptions import SyncError
from timelens_cli.models.focus.history import SessionLog, SessionRecord
from timelens_cli.models.focus.stats import FocusStats
from timelens_cli.services.api.client import APIClient
from timelens_cli.services.sync_state import SyncState

logger = logging.getLogger(__name__)

SESSIONS_PATH = "/api/focus/sessions"
STATS_PATH = "/api/focus/stats"


class SyncResult:
    """Result of a sync operation."""

    def __init__(self):
        """Initialize sync result."""
        self.fetched = 0
        self.pushed = 0
        self.restored = 0
        self.skipped = 0
        self.failed = 0
        self.errors: list[str] = []
        self.duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.failed == 0


def _describe(error: Exception) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code} from {error.request.url}"
    return str(error) or error.__class__.__name__


class FocusSyncService:
    """Moves SessionRecords between the local log and the remote API."""

    def __init__(self, client: APIClient):
        self.client = client

    async def push_record(self, record: SessionRecord) -> dict[str, Any]:
        """
        Persist one record remotely.

        Raises:
            SyncError: If the request fails
        """
        try:
            response = await self.client.post(SESSIONS_PATH, json=record.to_payload())
            return response.json().get("session", {})
        except (httpx.HTTPError, RuntimeError) as e:
            raise SyncError(f"Failed to push session {record.id}: {_describe(e)}") from e
        except (AttributeError, ValueError) as e:
            raise SyncError(f"Malformed push response for {record.id}: {e}") from e

    async def push_pending(
        self, session_log: SessionLog, sync_state: SyncState
    ) -> SyncResult:
        """Push every local record not yet marked as pushed."""
        result = SyncResult()
        start = time.monotonic()

        for record in session_log.all():
            if sync_state.is_pushed(record.id):
                result.skipped += 1
                continue
            try:
                await self.push_record(record)
            except SyncError as e:
                logger.warning("%s", e)
                result.failed += 1
                result.errors.append(str(e))
                continue
            sync_state.mark_pushed(record.id)
            result.pushed += 1

        if result.success:
            sync_state.set_last_sync("push")
        result.duration = time.monotonic() - start
        return result

    async def pull_history(self, limit: int = 20) -> list[SessionRecord]:
        """
        Fetch the most recent remote records, newest first.

        Raises:
            SyncError: If the request fails or the payload is malformed
        """
        try:
            response = await self.client.get(SESSIONS_PATH, params={"limit": limit})
            sessions = response.json().get("sessions", [])
            return [SessionRecord.from_payload(item) for item in sessions]
        except (httpx.HTTPError, RuntimeError) as e:
            raise SyncError(f"Failed to fetch sessions: {_describe(e)}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise SyncError(f"Malformed session payload: {e}") from e

    async def restore(
        self, session_log: SessionLog, sync_state: SyncState, limit: int = 100
    ) -> SyncResult:
        """
        Append remote records missing from the local log.

        Restored records are appended oldest first and marked as pushed.

        Raises:
            SyncError: If the remote history cannot be fetched
            PersistenceError: If the local log cannot be written
        """
        result = SyncResult()
        start = time.monotonic()

        remote = await self.pull_history(limit)
        result.fetched = len(remote)

        for record in reversed(remote):
            if session_log.contains(record.id):
                result.skipped += 1
            else:
                session_log.append(record)
                result.restored += 1
            sync_state.mark_pushed(record.id)

        sync_state.set_last_sync("pull")
        result.duration = time.monotonic() - start
        logger.info(
            "Restored %d of %d remote sessions", result.restored, result.fetched
        )
        return result

    async def fetch_remote_stats(self) -> FocusStats:
        """
        Today's stats as computed by the server.

        Raises:
            SyncError: If the request fails
        """
        try:
            response = await self.client.get(STATS_PATH)
            return FocusStats.from_payload(response.json().get("stats", {}))
        except (httpx.HTTPError, RuntimeError) as e:
            raise SyncError(f"Failed to fetch stats: {_describe(e)}") from e
        except (TypeError, ValueError) as e:
            raise SyncError(f"Malformed stats payload: {e}") from e
