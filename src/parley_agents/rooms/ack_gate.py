"""Ack Gate - Paces each room against an external "turn consumed" signal.

After a turn is broadcast the room waits until the downstream consumer reports
that it has finished with it (for example speech playback ended), or until a
timeout elapses. Each room has at most one pending waiter; arming a new wait
discards the previous one together with its timer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class AckOutcome(str, Enum):
    """How a single wait was resolved."""

    ACKNOWLEDGED = "acknowledged"
    TIMED_OUT = "timed_out"
    SUPERSEDED = "superseded"


@dataclass
class _Waiter:
    room_id: str
    future: "asyncio.Future[AckOutcome]"
    sequence: Optional[int] = None
    timer: Optional[asyncio.TimerHandle] = None


class AckGate:
    """Per-room ack-or-timeout synchronization.

    All state is touched from the event loop thread only: ``acknowledge`` and
    the timer callback both remove the waiter from its slot and cancel the
    timer before resolving the future, so whichever fires first wins and the
    other finds an empty slot.
    """

    def __init__(self) -> None:
        self._waiters: Dict[str, _Waiter] = {}
        self._stats: Dict[str, int] = {outcome.value: 0 for outcome in AckOutcome}

    async def wait(self, room_id: str, timeout: float, *, sequence: Optional[int] = None) -> AckOutcome:
        """Suspend until ``acknowledge(room_id)`` or ``timeout`` seconds pass.

        ``sequence`` tags the wait with the turn it belongs to, so a late ack
        carrying an older turn's sequence is ignored.
        """

        loop = asyncio.get_running_loop()
        self._release(room_id, AckOutcome.SUPERSEDED)

        waiter = _Waiter(room_id=room_id, future=loop.create_future(), sequence=sequence)
        waiter.timer = loop.call_later(timeout, self._expire, waiter)
        self._waiters[room_id] = waiter

        try:
            return await waiter.future
        finally:
            # Only reached early when the awaiting task itself is cancelled.
            if self._waiters.get(room_id) is waiter:
                self._waiters.pop(room_id, None)
            if waiter.timer is not None:
                waiter.timer.cancel()

    def acknowledge(self, room_id: str, *, sequence: Optional[int] = None) -> bool:
        """Resolve the room's pending wait; a no-op when nothing is pending.

        An ack naming a ``sequence`` other than the pending turn's is dropped.
        Untagged acks resolve whatever turn is pending.
        """

        waiter = self._waiters.get(room_id)
        if (
            waiter is not None
            and sequence is not None
            and waiter.sequence is not None
            and sequence != waiter.sequence
        ):
            logger.debug(f"[{room_id}] Ack for turn {sequence} ignored - waiting on turn {waiter.sequence}")
            return False
        if self._release(room_id, AckOutcome.ACKNOWLEDGED):
            logger.debug(f"[{room_id}] Ack received - advancing to next turn")
            return True
        logger.debug(f"[{room_id}] Ack ignored - no turn awaiting acknowledgment")
        return False

    def discard(self, room_id: str) -> None:
        """Drop any lingering waiter for the room and cancel its timer."""

        self._release(room_id, AckOutcome.SUPERSEDED)

    def has_waiter(self, room_id: str) -> bool:
        return room_id in self._waiters

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def _expire(self, waiter: _Waiter) -> None:
        if self._waiters.get(waiter.room_id) is not waiter:
            return
        logger.warning(f"[{waiter.room_id}] Ack timeout - advancing anyway")
        self._release(waiter.room_id, AckOutcome.TIMED_OUT)

    def _release(self, room_id: str, outcome: AckOutcome) -> bool:
        waiter = self._waiters.pop(room_id, None)
        if waiter is None:
            return False
        if waiter.timer is not None:
            waiter.timer.cancel()
            waiter.timer = None
        if waiter.future.done():
            return False
        waiter.future.set_result(outcome)
        self._stats[outcome.value] += 1
        return True
