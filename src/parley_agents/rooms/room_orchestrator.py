"""Room Orchestrator - Turn-taking state machine for a single room.

Each orchestrator drives one session: it alternates initiator and respondent
turns, persists and broadcasts every generated line, then waits for the
downstream consumer to acknowledge the line (or for the ack timeout) before
moving on. Stop requests are observed cooperatively at turn boundaries.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from parley_core.llm import LLMMessage
from parley_core.settings import RoomDefinition

from .ack_gate import AckGate, AckOutcome
from .broadcaster import EventBroadcaster
from .config import OrchestratorSettings
from .errors import GenerationError, PersistenceError
from .history_view import SpeakerRole, entry_for, history_for
from .messages import RoomStatusEvent, TurnEvent
from .personas import PersonaCatalog, RespondentVariant
from .recorder import SessionRecorder
from .turn_generator import TurnGenerator

logger = logging.getLogger(__name__)


class RoomPhase(str, Enum):
    """State of a room's conversation."""

    CREATED = "created"
    RUNNING = "running"
    GENERATING = "generating"
    PERSISTING = "persisting"
    AWAITING_ACK = "awaiting_ack"
    PAUSING = "pausing"
    COMPLETED = "completed"  # Turn budget exhausted
    STOPPED = "stopped"  # Stop observed between turns

    @property
    def is_terminal(self) -> bool:
        return self in (RoomPhase.COMPLETED, RoomPhase.STOPPED)


class RoomOrchestrator:
    """Drives exactly one room's conversation from start to completion."""

    def __init__(
        self,
        room: RoomDefinition,
        session_id: str,
        *,
        generator: TurnGenerator,
        recorder: SessionRecorder,
        broadcaster: EventBroadcaster,
        ack_gate: AckGate,
        personas: PersonaCatalog,
        should_continue: Callable[[], bool],
        settings: Optional[OrchestratorSettings] = None,
        on_finished: Optional[Callable[["RoomOrchestrator"], None]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.room = room
        self.session_id = session_id
        self.settings = settings or OrchestratorSettings()

        self._generator = generator
        self._recorder = recorder
        self._broadcaster = broadcaster
        self._ack_gate = ack_gate
        self._personas = personas
        self._should_continue = should_continue
        self._on_finished = on_finished
        self._rng = rng

        self.phase = RoomPhase.CREATED
        self.current_turn = 0
        self.message_count = 0
        self.spoken_turns = 0
        self.failed_turns: List[int] = []
        self.ack_outcomes: List[AckOutcome] = []
        self.variant: Optional[RespondentVariant] = None

        # Initiator perspective: initiator = assistant, respondent = user
        self.history: List[LLMMessage] = []

        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self._last_timestamp: Optional[datetime] = None

    @property
    def room_id(self) -> str:
        return self.room.room_id

    async def run(self) -> RoomPhase:
        """Play turns until the budget is exhausted or a stop is observed."""

        self._enter(RoomPhase.RUNNING)
        self.started_at = _utcnow()
        logger.info(f"[{self.room_id}] Starting conversation (session: {self.session_id})")

        outcome = RoomPhase.COMPLETED
        try:
            await self._assign_variant()
            for turn in range(self.settings.turns_per_session):
                if not self._should_continue():
                    logger.info(f"[{self.room_id}] Stopped at turn {turn}")
                    outcome = RoomPhase.STOPPED
                    break
                self.current_turn = turn
                await self._play_turn(turn)
        except asyncio.CancelledError:
            outcome = RoomPhase.STOPPED
            raise
        except Exception:
            logger.exception(f"[{self.room_id}] Conversation loop failed at turn {self.current_turn}")
            outcome = RoomPhase.STOPPED
        finally:
            await self._finalize(outcome)

        return outcome

    def get_statistics(self) -> Dict[str, Any]:
        duration = None
        if self.started_at:
            end_time = self.completed_at or _utcnow()
            duration = (end_time - self.started_at).total_seconds()

        return {
            "room_id": self.room_id,
            "session_id": self.session_id,
            "phase": self.phase.value,
            "current_turn": self.current_turn,
            "message_count": self.message_count,
            "spoken_turns": self.spoken_turns,
            "failed_turns": list(self.failed_turns),
            "variant": self.variant.id if self.variant else None,
            "duration_seconds": duration,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    # ------------------------------------------------------------------ #
    # Turn loop
    # ------------------------------------------------------------------ #

    async def _assign_variant(self) -> None:
        self.variant = self._personas.choose(self._rng)
        logger.info(f"[{self.room_id}] Respondent variant: {self.variant.id}")
        try:
            await self._recorder.set_variant(self.session_id, self.variant.id)
        except PersistenceError as exc:
            logger.error(f"[{self.room_id}] Failed to record variant: {exc}")

    async def _play_turn(self, turn: int) -> None:
        role = SpeakerRole.for_turn(turn)
        instructions = self._personas.instructions_for(role, self.variant)
        view = history_for(role, self.history)

        self._enter(RoomPhase.GENERATING)
        try:
            text = (await self._generator.generate(instructions, view)).strip()
            if not text:
                raise GenerationError("Generator returned an empty line", room_id=self.room_id)
        except GenerationError as exc:
            self.failed_turns.append(turn)
            logger.error(f"[{self.room_id}] Turn {turn} ({role.value}) failed: {exc}")
            return
        except Exception:  # pragma: no cover - defensive guardrail
            self.failed_turns.append(turn)
            logger.exception(f"[{self.room_id}] Turn {turn} ({role.value}) failed unexpectedly")
            return

        timestamp = self._next_timestamp()
        self.history.append(entry_for(role, text))
        self.spoken_turns += 1

        self._enter(RoomPhase.PERSISTING)
        await self._persist(role, text, timestamp, turn)

        logger.debug(f"[{self.room_id}] Turn {turn + 1} - {role.value}: {text!r}")
        self._broadcaster.publish_turn(
            TurnEvent(
                room_id=self.room_id,
                session_id=self.session_id,
                role=role.value,
                text=text,
                timestamp=timestamp,
                sequence=turn,
            )
        )
        self._broadcaster.publish_room_status(
            RoomStatusEvent(
                room_id=self.room_id,
                status="active",
                message_count=self.message_count,
                session_id=self.session_id,
            )
        )

        self._enter(RoomPhase.AWAITING_ACK)
        outcome = await self._ack_gate.wait(
            self.room_id, self.settings.ack_timeout_seconds, sequence=turn
        )
        self.ack_outcomes.append(outcome)

        self._enter(RoomPhase.PAUSING)
        await asyncio.sleep(self.settings.post_ack_pause_seconds)

    async def _persist(self, role: SpeakerRole, text: str, timestamp: datetime, turn: int) -> None:
        try:
            await self._recorder.append_message(
                self.session_id, self.room_id, role.value, text, timestamp, turn
            )
            self.message_count = await self._recorder.increment_message_count(self.session_id)
        except PersistenceError as exc:
            logger.error(f"[{self.room_id}] Failed to save turn {turn}: {exc}")
        except Exception:  # pragma: no cover - defensive guardrail
            logger.exception(f"[{self.room_id}] Failed to save turn {turn}")

    async def _finalize(self, outcome: RoomPhase) -> None:
        self._enter(outcome)
        self.completed_at = _utcnow()
        try:
            await self._recorder.finalize(self.session_id, self.completed_at)
        except Exception:
            logger.exception(f"[{self.room_id}] Failed to finalize session {self.session_id}")
        finally:
            self._ack_gate.discard(self.room_id)
            if self._on_finished is not None:
                self._on_finished(self)
            self._broadcaster.publish_room_status(
                RoomStatusEvent(
                    room_id=self.room_id,
                    status="idle",
                    message_count=self.message_count,
                    session_id=self.session_id,
                )
            )
        logger.info(
            f"[{self.room_id}] Session {outcome.value} after {self.spoken_turns} turns "
            f"({len(self.failed_turns)} failed)"
        )

    def _enter(self, phase: RoomPhase) -> None:
        self.phase = phase

    def _next_timestamp(self) -> datetime:
        timestamp = _utcnow()
        if self._last_timestamp is not None and timestamp <= self._last_timestamp:
            timestamp = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = timestamp
        return timestamp


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
