"""Append-only focus session history with SQLite storage."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import closing, contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .exceptions import PersistenceError
from .state import SessionType, from_wire_type, normalize_intention, to_wire_type

logger = logging.getLogger(__name__)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


@dataclass(frozen=True)
class SessionRecord:
    """A finished or abandoned phase. Immutable once written."""

    id: str
    type: SessionType
    duration_seconds: int
    was_interrupted: bool
    intention: str
    completed_at: datetime

    @classmethod
    def create(
        cls,
        session_type: SessionType,
        duration_seconds: int,
        was_interrupted: bool,
        completed_at: datetime,
        intention: str | None = None,
    ) -> "SessionRecord":
        """Build a record with a fresh unique id."""
        return cls(
            id=str(uuid.uuid4()),
            type=session_type,
            duration_seconds=max(0, int(duration_seconds)),
            was_interrupted=was_interrupted,
            intention=normalize_intention(intention),
            completed_at=completed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["completed_at"] = self.completed_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            type=from_wire_type(data["type"]),
            duration_seconds=int(data["duration_seconds"]),
            was_interrupted=bool(data["was_interrupted"]),
            intention=data.get("intention") or "",
            completed_at=_parse_timestamp(data["completed_at"]),
        )

    def to_payload(self) -> dict[str, Any]:
        """Body for ``POST /api/focus/sessions``."""
        return {
            "id": self.id,
            "type": to_wire_type(self.type),
            "duration": self.duration_seconds,
            "wasInterrupted": self.was_interrupted,
            "intention": self.intention,
            "completedAt": self.completed_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "SessionRecord":
        """Parse a session as returned by ``GET /api/focus/sessions``."""
        return cls(
            id=str(data["id"]),
            type=from_wire_type(data["type"]),
            duration_seconds=int(data.get("duration") or 0),
            was_interrupted=bool(data.get("wasInterrupted", False)),
            intention=normalize_intention(data.get("intention")),
            completed_at=_parse_timestamp(data["completedAt"]),
        )


class RecentSessions:
    """Lazy, restartable view over the newest records.

    Each iteration runs a fresh query, so records appended in between are seen.
    """

    def __init__(
        self, log: "SessionLog", limit: int, session_type: SessionType | None = None
    ):
        self._log = log
        self.limit = limit
        self.session_type = session_type

    def __iter__(self) -> Iterator[SessionRecord]:
        sql = "SELECT * FROM focus_sessions"
        params: tuple = ()
        if self.session_type:
            sql += " WHERE session_type = ?"
            params = (self.session_type,)
        sql += " ORDER BY seq DESC LIMIT ?"
        params += (self.limit,)

        yield from self._log._select(sql, params)


class SessionLog:
    """Ordered, append-only store of SessionRecords.

    Insertion order (the ``seq`` column) is the source of truth; records are
    never updated or deleted here.
    """

    def __init__(self, db_path: Path | None = None):
        """Initialize the session log."""
        if db_path is None:
            from platformdirs import user_data_dir

            data_dir = Path(user_data_dir("timelens_cli"))
            db_path = data_dir / "focus_sessions.db"

        self.db_path = Path(db_path)
        self._initialized = False

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that is committed and closed on every exit path."""
        try:
            if not self._initialized:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with closing(sqlite3.connect(self.db_path)) as conn:
                conn.row_factory = sqlite3.Row
                if not self._initialized:
                    self._init_database(conn)
                    self._initialized = True
                with conn:
                    yield conn
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Session log unavailable: {e}") from e

    @staticmethod
    def _init_database(conn: sqlite3.Connection) -> None:
        """Initialize database schema."""
        with conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS focus_sessions (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    session_type TEXT NOT NULL,
                    duration_seconds INTEGER NOT NULL,
                    was_interrupted INTEGER NOT NULL,
                    intention TEXT NOT NULL DEFAULT '',
                    completed_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_focus_sessions_type
                ON focus_sessions(session_type)
                """
            )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> SessionRecord:
        return SessionRecord(
            id=row["id"],
            type=row["session_type"],
            duration_seconds=row["duration_seconds"],
            was_interrupted=bool(row["was_interrupted"]),
            intention=row["intention"],
            completed_at=_parse_timestamp(row["completed_at"]),
        )

    def _select(self, sql: str, params: tuple = ()) -> list[SessionRecord]:
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def append(self, record: SessionRecord) -> None:
        """
        Durably append a record.

        Raises:
            PersistenceError: If storage is unavailable or the id already exists
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO focus_sessions (
                    id, session_type, duration_seconds, was_interrupted,
                    intention, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.type,
                    record.duration_seconds,
                    1 if record.was_interrupted else 0,
                    record.intention,
                    record.completed_at.isoformat(),
                ),
            )
        logger.debug(
            "Appended %s record %s (%ss, interrupted=%s)",
            record.type,
            record.id,
            record.duration_seconds,
            record.was_interrupted,
        )

    def list_recent(
        self, limit: int = 20, session_type: SessionType | None = None
    ) -> RecentSessions:
        """
        Get the most recent records, newest first.

        Args:
            limit: Maximum number of records per iteration
            session_type: Filter by session type (focus, short_break, long_break)

        Raises:
            ValueError: If limit is not positive
        """
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        return RecentSessions(self, limit, session_type)

    def all(self) -> list[SessionRecord]:
        """Every record, in insertion order."""
        return self._select("SELECT * FROM focus_sessions ORDER BY seq ASC")

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM focus_sessions").fetchone()[0]

    def contains(self, record_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM focus_sessions WHERE id = ?", (record_id,)
            ).fetchone()
        return row is not None
