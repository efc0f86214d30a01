from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set
from uuid import uuid4

import pytest

from parley_agents.rooms import (
    GenerationError,
    OrchestratorSettings,
    PersistenceError,
    PersonaCatalog,
    RespondentVariant,
    RoomCatalog,
    RoomRegistry,
    RoomStatusEvent,
    TurnEvent,
)
from parley_core.llm import LLMMessage
from parley_core.settings import RoomDefinition


class ScriptedTurnGenerator:
    """Returns numbered lines and fails on the requested call indexes."""

    def __init__(self, *, fail_on: Optional[Set[int]] = None, delay: float = 0.0) -> None:
        self.fail_on = set(fail_on or set())
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, instructions: str, history: Sequence[LLMMessage]) -> str:
        index = len(self.calls)
        self.calls.append({"instructions": instructions, "history": list(history)})
        if self.delay:
            await asyncio.sleep(self.delay)
        if index in self.fail_on:
            raise GenerationError(f"scripted failure on call {index}")
        return f"line {index}"


@dataclass
class _Session:
    id: str
    room_id: str
    status: str = "active"
    variant: str = "PENDING"
    message_count: int = 0
    end_time: Optional[datetime] = None


@dataclass
class _Message:
    session_id: str
    room_id: str
    role: str
    text: str
    timestamp: datetime
    sequence: int


@dataclass
class InMemoryRecorder:
    """Session recorder keeping everything in dictionaries."""

    fail_create: bool = False
    fail_append: bool = False
    sessions: Dict[str, _Session] = field(default_factory=dict)
    messages: List[_Message] = field(default_factory=list)

    async def create_session(self, room_id: str) -> str:
        if self.fail_create:
            raise PersistenceError("database unavailable", room_id=room_id)
        session = _Session(id=uuid4().hex, room_id=room_id)
        self.sessions[session.id] = session
        return session.id

    async def set_variant(self, session_id: str, variant: str) -> None:
        session = self.sessions[session_id]
        if session.status == "active":
            session.variant = variant

    async def append_message(
        self,
        session_id: str,
        room_id: str,
        role: str,
        text: str,
        timestamp: datetime,
        sequence: int,
    ) -> None:
        if self.fail_append:
            raise PersistenceError("write failed", room_id=room_id)
        self.messages.append(_Message(session_id, room_id, role, text, timestamp, sequence))

    async def increment_message_count(self, session_id: str) -> int:
        session = self.sessions[session_id]
        if session.status == "active":
            session.message_count = len(self.messages_for(session_id))
        return session.message_count

    async def finalize(self, session_id: str, end_time: datetime) -> None:
        session = self.sessions[session_id]
        if session.status == "active":
            session.status = "stopped"
            session.end_time = end_time

    def messages_for(self, session_id: str) -> List[_Message]:
        return [message for message in self.messages if message.session_id == session_id]


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.turns: List[TurnEvent] = []
        self.statuses: List[RoomStatusEvent] = []

    def publish_turn(self, event: TurnEvent) -> None:
        self.turns.append(event)

    def publish_room_status(self, event: RoomStatusEvent) -> None:
        self.statuses.append(event)


class AutoAckBroadcaster(RecordingBroadcaster):
    """Acknowledges every turn as soon as the room starts waiting for it."""

    def __init__(self) -> None:
        super().__init__()
        self.registry: Optional[RoomRegistry] = None

    def publish_turn(self, event: TurnEvent) -> None:
        super().publish_turn(event)
        assert self.registry is not None
        asyncio.get_running_loop().call_soon(self.registry.acknowledge, event.room_id)


TEST_VARIANT = RespondentVariant(id="test-variant", summary="Test", profile="You have a test ache.")


def build_registry(
    *,
    generator: Optional[ScriptedTurnGenerator] = None,
    recorder: Optional[InMemoryRecorder] = None,
    broadcaster: Optional[RecordingBroadcaster] = None,
    turns: int = 4,
    ack_timeout: float = 5.0,
    pause: float = 0.0,
) -> RoomRegistry:
    broadcaster = broadcaster if broadcaster is not None else RecordingBroadcaster()
    registry = RoomRegistry(
        RoomCatalog(
            [
                RoomDefinition(room_id="r1", name="Room One"),
                RoomDefinition(room_id="r2", name="Room Two"),
            ]
        ),
        generator=generator or ScriptedTurnGenerator(),
        recorder=recorder or InMemoryRecorder(),
        broadcaster=broadcaster,
        personas=PersonaCatalog([TEST_VARIANT], interviewer_prompt="You are the interviewer."),
        settings=OrchestratorSettings(
            turns_per_session=turns,
            ack_timeout_seconds=ack_timeout,
            post_ack_pause_seconds=pause,
        ),
    )
    if isinstance(broadcaster, AutoAckBroadcaster):
        broadcaster.registry = registry
    return registry


async def wait_until(predicate, *, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


@pytest.fixture
def recorder() -> InMemoryRecorder:
    return InMemoryRecorder()


@pytest.fixture
def generator() -> ScriptedTurnGenerator:
    return ScriptedTurnGenerator()
