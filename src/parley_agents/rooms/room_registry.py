"""Room Registry - Process-wide authority on which rooms are running."""

from __future__ import annotations

import asyncio
import logging
import random
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .ack_gate import AckGate
from .broadcaster import EventBroadcaster, RoomBroadcaster
from .config import OrchestratorSettings, RoomCatalog
from .errors import AlreadyRunning, NotRunning, PersistenceError, RoomError
from .messages import RoomSnapshot, RoomStatusEvent, StartResult
from .personas import PersonaCatalog
from .recorder import SessionRecorder
from .room_orchestrator import RoomOrchestrator, RoomPhase
from .turn_generator import TurnGenerator

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class RunState:
    """One room run, from accepted start until the orchestrator finishes."""

    room_id: str
    running: bool = True
    session_id: Optional[str] = None
    orchestrator: Optional[RoomOrchestrator] = None
    task: Optional["asyncio.Task[RoomPhase]"] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class RoomRegistry:
    """Owns the run state of every configured room.

    Responsibilities:
    - Reject starts of rooms that already have a run, and stops of idle rooms
    - Create the session record and launch the orchestrator task
    - Route acknowledgments to the ack gate
    - Answer liveness queries

    The run table is guarded by a lock held only for synchronous
    check-and-set sections, never across an ``await``.
    """

    def __init__(
        self,
        catalog: RoomCatalog,
        *,
        generator: TurnGenerator,
        recorder: SessionRecorder,
        broadcaster: Optional[EventBroadcaster] = None,
        ack_gate: Optional[AckGate] = None,
        personas: Optional[PersonaCatalog] = None,
        settings: Optional[OrchestratorSettings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.catalog = catalog
        self.generator = generator
        self.recorder = recorder
        self.broadcaster = broadcaster or RoomBroadcaster()
        self.ack_gate = ack_gate or AckGate()
        self.personas = personas or PersonaCatalog()
        self.settings = settings or OrchestratorSettings()
        self.rng = rng

        self._runs: Dict[str, RunState] = {}
        self._lock = threading.Lock()

        logger.info(f"Initialized RoomRegistry with {len(catalog)} rooms: {', '.join(catalog.room_ids)}")

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self, room_id: str) -> StartResult:
        """Create a session and launch the room's conversation in the background."""

        room = self.catalog.require(room_id)
        with self._lock:
            existing = self._runs.get(room_id)
            if existing is not None:
                detail = "is already running" if existing.running else "is still stopping"
                raise AlreadyRunning(f"{room_id} {detail}", room_id=room_id)
            run = RunState(room_id=room_id)
            self._runs[room_id] = run

        try:
            session_id = await self.recorder.create_session(room_id)
        except PersistenceError:
            self._release(run)
            raise
        except asyncio.CancelledError:
            self._release(run)
            raise
        except Exception as exc:
            self._release(run)
            raise PersistenceError(f"Failed to create session for {room_id}: {exc}", room_id=room_id) from exc

        orchestrator = RoomOrchestrator(
            room,
            session_id,
            generator=self.generator,
            recorder=self.recorder,
            broadcaster=self.broadcaster,
            ack_gate=self.ack_gate,
            personas=self.personas,
            settings=self.settings,
            should_continue=lambda: run.running,
            on_finished=lambda _orchestrator: self._release(run),
            rng=self.rng,
        )
        run.session_id = session_id
        run.orchestrator = orchestrator
        run.task = asyncio.create_task(orchestrator.run(), name=f"room:{room_id}")
        run.task.add_done_callback(self._on_task_done)

        self.broadcaster.publish_room_status(
            RoomStatusEvent(room_id=room_id, status="active", message_count=0, session_id=session_id)
        )
        logger.info(f"[{room_id}] Started - session: {session_id}")
        return StartResult(room_id=room_id, session_id=session_id)

    def stop(self, room_id: str) -> None:
        """Ask the room to stop at its next turn boundary."""

        self.catalog.require(room_id)
        with self._lock:
            run = self._runs.get(room_id)
            if run is None or not run.running:
                raise NotRunning(f"{room_id} is not running", room_id=room_id)
            run.running = False
        logger.info(f"[{room_id}] Stop signal sent")

    async def start_all(self) -> List[StartResult]:
        """Start every idle room; per-room failures are logged and skipped."""

        results: List[StartResult] = []
        for room_id in self.catalog.room_ids:
            if self._has_run(room_id):
                continue
            try:
                results.append(await self.start(room_id))
            except RoomError as exc:
                logger.error(f"[{room_id}] Bulk start failed: {exc}")
        return results

    def stop_all(self) -> List[str]:
        """Stop every running room, returning the ids that were signalled."""

        stopped: List[str] = []
        for room_id in self.catalog.room_ids:
            if not self.is_running(room_id):
                continue
            try:
                self.stop(room_id)
            except NotRunning:
                continue
            stopped.append(room_id)
        return stopped

    async def wait_for(self, room_id: str) -> Optional[RoomPhase]:
        """Wait for the room's current run to finish, if any."""

        with self._lock:
            run = self._runs.get(room_id)
            task = run.task if run is not None else None
        if task is None:
            return None
        await asyncio.wait({task})
        if task.cancelled() or task.exception() is not None:
            return RoomPhase.STOPPED
        return task.result()

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Stop all rooms and wait for their tasks, cancelling stragglers."""

        self.stop_all()
        with self._lock:
            tasks = [run.task for run in self._runs.values() if run.task is not None]
        for room_id in self.catalog.room_ids:
            self.ack_gate.discard(room_id)
        if not tasks:
            return

        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            logger.warning(f"Cancelling {task.get_name()} after shutdown timeout")
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Queries and signals
    # ------------------------------------------------------------------ #

    def acknowledge(self, room_id: str, *, sequence: Optional[int] = None) -> bool:
        """Deliver an external "turn consumed" signal for the room.

        Must be called from the event loop thread. When ``sequence`` is given
        the signal only counts for that turn.
        """

        self.catalog.require(room_id)
        return self.ack_gate.acknowledge(room_id, sequence=sequence)

    def is_running(self, room_id: str) -> bool:
        with self._lock:
            run = self._runs.get(room_id)
            return run is not None and run.running

    def snapshot(self, room_id: str) -> RoomSnapshot:
        room = self.catalog.require(room_id)
        with self._lock:
            run = self._runs.get(room_id)
            if run is None:
                return RoomSnapshot(room_id=room_id, name=room.name, status="idle")

            orchestrator = run.orchestrator
            return RoomSnapshot(
                room_id=room_id,
                name=room.name,
                status="active" if run.running else "stopping",
                session_id=run.session_id,
                message_count=orchestrator.message_count if orchestrator else 0,
                current_turn=orchestrator.current_turn if orchestrator else 0,
                phase=orchestrator.phase.value if orchestrator else None,
            )

    def snapshot_all(self) -> List[RoomSnapshot]:
        return [self.snapshot(room.room_id) for room in self.catalog]

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _has_run(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._runs

    def _release(self, run: RunState) -> None:
        with self._lock:
            if self._runs.get(run.room_id) is run:
                del self._runs[run.room_id]
        run.running = False

    def _on_task_done(self, task: "asyncio.Task[RoomPhase]") -> None:
        if task.cancelled():
            logger.debug(f"{task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"{task.get_name()} crashed", exc_info=exc)
