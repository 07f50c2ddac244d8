"""Focus service - wires settings, timer, session log and optional sync."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Mapping
from datetime import date, datetime
from functools import lru_cache
from typing import Any

from timelens_cli.models.focus.clock import Clock
from timelens_cli.models.focus.exceptions import SyncError
from timelens_cli.models.focus.history import SessionLog, SessionRecord
from timelens_cli.models.focus.settings import FocusSettings, SettingsManager
from timelens_cli.models.focus.state import SessionType
from timelens_cli.models.focus.stats import FocusStats, compute_stats
from timelens_cli.models.focus.timer import FocusTimer, TimerEvent
from timelens_cli.services.config_service import ConfigService, get_config_service
from timelens_cli.services.sync_service import FocusSyncService
from timelens_cli.services.sync_state import SyncState

logger = logging.getLogger(__name__)


class FocusService:
    """Entry point the CLI uses for everything focus related."""

    def __init__(
        self,
        config_service: ConfigService,
        session_log: SessionLog,
        clock: Clock | None = None,
        sync: FocusSyncService | None = None,
        sync_state: SyncState | None = None,
    ):
        self.config_service = config_service
        self.session_log = session_log
        self.settings_manager = SettingsManager(
            settings=config_service.load_settings(),
            save=config_service.save_settings,
        )
        self.timer = FocusTimer(self.settings_manager, session_log, clock=clock)

        self.sync = sync
        self.sync_state = sync_state
        self._sync_lock = threading.Lock()
        self._sync_threads: list[threading.Thread] = []

        if self.auto_sync_enabled:
            self.timer.subscribe(self._on_timer_event)

    @property
    def settings(self) -> FocusSettings:
        return self.settings_manager.current

    @property
    def auto_sync_enabled(self) -> bool:
        return self.sync is not None and self.config_service.config.sync.auto

    def update_settings(self, updates: Mapping[str, Any]) -> FocusSettings:
        """Apply a partial settings update (see SettingsManager.update)."""
        return self.settings_manager.update(updates)

    def reset_settings(self) -> FocusSettings:
        return self.settings_manager.reset()

    def stats(self, today: date | datetime | None = None) -> FocusStats:
        """Stats recomputed from the full session log."""
        if today is None:
            today = self.timer.clock.now()
        return compute_stats(self.session_log.all(), today)

    def recent(
        self, limit: int = 20, session_type: SessionType | None = None
    ) -> list[SessionRecord]:
        return list(self.session_log.list_recent(limit, session_type))

    # ------------------------------------------------------------------
    # Auto sync
    # ------------------------------------------------------------------

    def _on_timer_event(self, event: TimerEvent) -> None:
        if event.kind not in ("phase_completed", "reset") or event.record is None:
            return
        pending_ids = {record.id for record in self.timer.pending_records}
        if event.record.id in pending_ids:
            return

        thread = threading.Thread(
            target=self._push_record,
            args=(event.record,),
            name="timelens-sync",
            daemon=True,
        )
        self._sync_threads.append(thread)
        thread.start()

    def _push_record(self, record: SessionRecord) -> None:
        assert self.sync is not None

        async def push() -> None:
            try:
                await self.sync.push_record(record)
            finally:
                await self.sync.client.close()

        # One event loop at a time owns the shared API client
        with self._sync_lock:
            try:
                asyncio.run(push())
            except SyncError as e:
                logger.warning("Auto sync failed: %s", e)
                return
            if self.sync_state is not None:
                self.sync_state.mark_pushed(record.id)
        logger.debug("Auto synced record %s", record.id)

    def wait_for_sync(self, timeout: float | None = None) -> None:
        """Block until background pushes started so far have finished."""
        threads, self._sync_threads = self._sync_threads, []
        for thread in threads:
            thread.join(timeout)


def build_sync_service() -> FocusSyncService:
    """Sync service backed by a fresh API client."""
    from timelens_cli.services.api.client import get_client

    return FocusSyncService(get_client())


@lru_cache(maxsize=1)
def get_focus_service() -> FocusService:
    """Get a cached FocusService for the configured data directory."""
    config_service = get_config_service()
    session_log = SessionLog(config_service.session_db_path)

    sync = None
    sync_state = None
    if config_service.config.sync.auto:
        sync = build_sync_service()
        sync_state = SyncState(config_service.data_dir)

    return FocusService(config_service, session_log, sync=sync, sync_state=sync_state)
