"""Async session recording on top of the SQLite session store."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime
from typing import Any, Callable, List, Optional, Protocol, Tuple, TypeVar

from parley_core.session_store import MessageRecord, SessionRecord, SessionStore

from .errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionRecorder(Protocol):
    """Durable record of sessions and their messages."""

    async def create_session(self, room_id: str) -> str: ...

    async def set_variant(self, session_id: str, variant: str) -> None: ...

    async def append_message(
        self,
        session_id: str,
        room_id: str,
        role: str,
        text: str,
        timestamp: datetime,
        sequence: int,
    ) -> None: ...

    async def increment_message_count(self, session_id: str) -> int: ...

    async def finalize(self, session_id: str, end_time: datetime) -> None: ...


class StoreSessionRecorder:
    """Run blocking ``SessionStore`` calls in a worker thread.

    ``sqlite3`` failures are re-raised as ``PersistenceError`` so callers deal
    with a single error type.
    """

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    async def create_session(self, room_id: str) -> str:
        record = await self._call(self.store.create_session, room_id)
        return record.id

    async def set_variant(self, session_id: str, variant: str) -> None:
        await self._call(self.store.set_variant, session_id, variant)

    async def append_message(
        self,
        session_id: str,
        room_id: str,
        role: str,
        text: str,
        timestamp: datetime,
        sequence: int,
    ) -> None:
        inserted = await self._call(
            self.store.append_message, session_id, room_id, role, text, timestamp, sequence
        )
        if not inserted:
            logger.debug("Message %s/%d already recorded", session_id, sequence)

    async def increment_message_count(self, session_id: str) -> int:
        return await self._call(self.store.increment_message_count, session_id)

    async def finalize(self, session_id: str, end_time: datetime) -> None:
        await self._call(self.store.finalize, session_id, end_time)

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        return await self._call(self.store.get_session, session_id)

    async def active_session(self, room_id: str) -> Optional[SessionRecord]:
        return await self._call(self.store.active_session, room_id)

    async def list_sessions(self, room_id: str, *, page: int = 1, limit: int = 10) -> Tuple[List[SessionRecord], int]:
        return await self._call(self.store.list_sessions, room_id, page=page, limit=limit)

    async def list_messages(self, session_id: str) -> List[MessageRecord]:
        return await self._call(self.store.list_messages, session_id)

    async def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except sqlite3.Error as exc:
            raise PersistenceError(f"{func.__name__} failed: {exc}") from exc
