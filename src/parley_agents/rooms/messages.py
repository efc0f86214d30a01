"""Event and status payloads published by the room runtime."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

RoomStatus = Literal["active", "stopping", "idle"]


class TurnEvent(BaseModel):
    """One generated line, broadcast to the room's listeners."""

    room_id: str
    session_id: str
    role: str
    text: str
    timestamp: datetime
    sequence: int


class RoomStatusEvent(BaseModel):
    """Room status change, broadcast to dashboard listeners."""

    room_id: str
    status: RoomStatus
    message_count: int = 0
    session_id: Optional[str] = None


class RoomSnapshot(BaseModel):
    """Point-in-time view of one configured room."""

    room_id: str
    name: str
    status: RoomStatus
    session_id: Optional[str] = None
    message_count: int = 0
    current_turn: int = 0
    phase: Optional[str] = None


class StartResult(BaseModel):
    """Returned by a successful room start."""

    room_id: str
    session_id: str
    status: RoomStatus = "active"
