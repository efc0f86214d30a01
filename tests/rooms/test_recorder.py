from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from parley_agents.rooms import PersistenceError, StoreSessionRecorder
from parley_core.session_store import SessionStore

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_recorder_writes_through_to_store(tmp_path: Path) -> None:
    recorder = StoreSessionRecorder(SessionStore(tmp_path / "parley.sqlite3"))

    session_id = await recorder.create_session("room1")
    await recorder.set_variant(session_id, "swollen-knee")
    await recorder.append_message(session_id, "room1", "initiator", "Hello", T0, 0)
    await recorder.append_message(session_id, "room1", "initiator", "Hello", T0, 0)
    assert await recorder.increment_message_count(session_id) == 1
    assert (await recorder.active_session("room1")).id == session_id

    await recorder.finalize(session_id, T0)

    session = await recorder.get_session(session_id)
    assert session.status == "stopped"
    assert session.variant == "swollen-knee"
    assert await recorder.active_session("room1") is None
    sessions, total = await recorder.list_sessions("room1")
    assert total == 1 and sessions[0].id == session_id
    assert [m.text for m in await recorder.list_messages(session_id)] == ["Hello"]


@pytest.mark.asyncio
async def test_sqlite_errors_become_persistence_errors(tmp_path: Path) -> None:
    store = SessionStore(tmp_path / "parley.sqlite3")
    recorder = StoreSessionRecorder(store)
    with store._connect() as conn:
        conn.execute("DROP TABLE messages")

    with pytest.raises(PersistenceError, match="append_message failed"):
        await recorder.append_message("s1", "room1", "initiator", "Hello", T0, 0)
