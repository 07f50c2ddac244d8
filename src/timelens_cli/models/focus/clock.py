"""Time sources for the focus timer.

All countdown arithmetic uses the monotonic clock; wall-clock time is only
used to stamp records.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

logger = logging.getLogger(__name__)


class TickHandle(Protocol):
    """Cancellable handle returned by ``Clock.schedule_tick``."""

    @property
    def active(self) -> bool: ...

    def cancel(self) -> None: ...


class Clock(Protocol):
    """Monotonic time provider with a repeating tick scheduler."""

    def now(self) -> datetime: ...

    def monotonic(self) -> float: ...

    def schedule_tick(
        self, interval_ms: int, callback: Callable[[], None]
    ) -> TickHandle: ...


class ThreadTicker:
    """Calls ``callback`` every ``interval`` seconds on a daemon thread."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self.callback = callback
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="timelens-ticker", daemon=True
        )

    @property
    def active(self) -> bool:
        return not self._stop.is_set() and self._thread.is_alive()

    def start(self) -> "ThreadTicker":
        self._thread.start()
        return self

    def _run(self) -> None:
        # Event.wait sleeps until the next tick or until cancelled
        while not self._stop.wait(self.interval):
            try:
                self.callback()
            except Exception:
                logger.exception("Tick callback failed")

    def cancel(self) -> None:
        # Never joins: may be called from the ticker thread itself
        self._stop.set()


class SystemClock:
    """Real clock backed by ``time.monotonic`` and the local timezone."""

    def now(self) -> datetime:
        return datetime.now().astimezone()

    def monotonic(self) -> float:
        return time.monotonic()

    def schedule_tick(
        self, interval_ms: int, callback: Callable[[], None]
    ) -> ThreadTicker:
        if interval_ms <= 0:
            raise ValueError("Tick interval must be positive")
        return ThreadTicker(interval_ms / 1000, callback).start()
