"""Durable session and message records for room conversations."""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

SESSION_ACTIVE = "active"
SESSION_STOPPED = "stopped"
PENDING_VARIANT = "PENDING"


@dataclass
class SessionRecord:
    id: str
    room_id: str
    start_time: datetime
    status: str
    variant: str
    message_count: int
    end_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "status": self.status,
            "variant": self.variant,
            "message_count": self.message_count,
        }


@dataclass
class MessageRecord:
    id: str
    session_id: str
    room_id: str
    role: str
    text: str
    timestamp: datetime
    sequence: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "room_id": self.room_id,
            "role": self.role,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "sequence": self.sequence,
        }


class SessionStore:
    """Persist sessions and messages in SQLite with WAL and safe transactions.

    Writes are safe to retry: a message is keyed by ``(session_id, sequence)``,
    the message count is recomputed from the stored messages, and a stopped
    session is never modified again.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path or Path("data/parley.sqlite3")
        self._lock = threading.RLock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=5.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA busy_timeout=5000;")
        return conn

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    room_id TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    status TEXT NOT NULL,
                    variant TEXT NOT NULL,
                    message_count INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL REFERENCES sessions(id),
                    room_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    text TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    sequence INTEGER NOT NULL,
                    UNIQUE(session_id, sequence)
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_room ON sessions(room_id, start_time)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id, timestamp)")

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def create_session(self, room_id: str, *, start_time: datetime | None = None) -> SessionRecord:
        record = SessionRecord(
            id=uuid4().hex,
            room_id=room_id,
            start_time=start_time or _utcnow(),
            status=SESSION_ACTIVE,
            variant=PENDING_VARIANT,
            message_count=0,
        )
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO sessions(id, room_id, start_time, end_time, status, variant, message_count)
                VALUES(?, ?, ?, NULL, ?, ?, 0)
                """,
                (record.id, room_id, record.start_time.isoformat(), record.status, record.variant),
            )
        return record

    def set_variant(self, session_id: str, variant: str) -> bool:
        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                "UPDATE sessions SET variant = ? WHERE id = ? AND status = ?",
                (variant, session_id, SESSION_ACTIVE),
            )
            return cursor.rowcount > 0

    def append_message(
        self,
        session_id: str,
        room_id: str,
        role: str,
        text: str,
        timestamp: datetime,
        sequence: int,
    ) -> bool:
        """Insert a message; returns ``False`` when the sequence is already stored."""

        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO messages(id, session_id, room_id, role, text, timestamp, sequence)
                VALUES(?, ?, ?, ?, ?, ?, ?)
                """,
                (uuid4().hex, session_id, room_id, role, text, timestamp.isoformat(), sequence),
            )
            return cursor.rowcount > 0

    def increment_message_count(self, session_id: str) -> int:
        """Sync the session's message count with its stored messages."""

        with self._lock, self._connect() as conn:
            conn.execute(
                """
                UPDATE sessions
                SET message_count = (SELECT COUNT(*) FROM messages WHERE session_id = ?)
                WHERE id = ? AND status = ?
                """,
                (session_id, session_id, SESSION_ACTIVE),
            )
            row = conn.execute("SELECT message_count FROM sessions WHERE id = ?", (session_id,)).fetchone()
            return int(row["message_count"]) if row is not None else 0

    def finalize(self, session_id: str, end_time: datetime | None = None) -> bool:
        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                "UPDATE sessions SET status = ?, end_time = ? WHERE id = ? AND status = ?",
                (SESSION_STOPPED, (end_time or _utcnow()).isoformat(), session_id, SESSION_ACTIVE),
            )
            return cursor.rowcount > 0

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock, self._connect() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return _session_from_row(row) if row is not None else None

    def active_session(self, room_id: str) -> Optional[SessionRecord]:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM sessions WHERE room_id = ? AND status = ? ORDER BY start_time DESC LIMIT 1",
                (room_id, SESSION_ACTIVE),
            ).fetchone()
        return _session_from_row(row) if row is not None else None

    def list_sessions(self, room_id: str, *, page: int = 1, limit: int = 10) -> Tuple[List[SessionRecord], int]:
        """Return one page of a room's sessions (newest first) and the total count."""

        page = max(1, page)
        limit = max(1, limit)
        offset = (page - 1) * limit
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM sessions WHERE room_id = ? ORDER BY start_time DESC LIMIT ? OFFSET ?",
                (room_id, limit, offset),
            ).fetchall()
            total_row = conn.execute("SELECT COUNT(*) AS total FROM sessions WHERE room_id = ?", (room_id,)).fetchone()
        return [_session_from_row(row) for row in rows], int(total_row["total"])

    def list_messages(self, session_id: str) -> List[MessageRecord]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE session_id = ? ORDER BY timestamp ASC, sequence ASC",
                (session_id,),
            ).fetchall()
        return [_message_from_row(row) for row in rows]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _session_from_row(row: sqlite3.Row) -> SessionRecord:
    end_time = row["end_time"]
    return SessionRecord(
        id=row["id"],
        room_id=row["room_id"],
        start_time=datetime.fromisoformat(row["start_time"]),
        end_time=datetime.fromisoformat(end_time) if end_time else None,
        status=row["status"],
        variant=row["variant"],
        message_count=int(row["message_count"]),
    )


def _message_from_row(row: sqlite3.Row) -> MessageRecord:
    return MessageRecord(
        id=row["id"],
        session_id=row["session_id"],
        room_id=row["room_id"],
        role=row["role"],
        text=row["text"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        sequence=int(row["sequence"]),
    )
