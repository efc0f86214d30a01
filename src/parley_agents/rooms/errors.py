"""Error taxonomy for room orchestration."""

from __future__ import annotations

from typing import Optional


class RoomError(Exception):
    """Base class for room lifecycle and turn failures."""

    def __init__(self, message: str, *, room_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.room_id = room_id


class InvalidRoom(RoomError, ValueError):
    """Raised when a room id is not part of the configured room set."""


class AlreadyRunning(RoomError):
    """Raised when starting a room that already has a run in progress."""


class NotRunning(RoomError):
    """Raised when stopping a room that is not running."""


class GenerationError(RoomError):
    """Raised by turn generators when no line of dialogue could be produced."""


class PersistenceError(RoomError):
    """Raised when a session or message record could not be written or read."""
