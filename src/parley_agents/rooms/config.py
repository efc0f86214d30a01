"""Room set and orchestrator timing, built from ``ParleySettings``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List

from parley_core.settings import ParleySettings, RoomDefinition

from .errors import InvalidRoom


@dataclass(frozen=True)
class OrchestratorSettings:
    turns_per_session: int = 30
    ack_timeout_seconds: float = 30.0
    post_ack_pause_seconds: float = 0.8

    @classmethod
    def from_settings(cls, settings: ParleySettings) -> "OrchestratorSettings":
        return cls(
            turns_per_session=settings.turns_per_session,
            ack_timeout_seconds=settings.ack_timeout_seconds,
            post_ack_pause_seconds=settings.post_ack_pause_seconds,
        )


class RoomCatalog:
    """The fixed, ordered set of rooms known at process start."""

    def __init__(self, rooms: Iterable[RoomDefinition]) -> None:
        self._rooms: Dict[str, RoomDefinition] = {}
        for room in rooms:
            if room.room_id in self._rooms:
                raise ValueError(f"Duplicate room id '{room.room_id}'.")
            self._rooms[room.room_id] = room
        if not self._rooms:
            raise ValueError("At least one room must be configured.")

    @classmethod
    def from_settings(cls, settings: ParleySettings) -> "RoomCatalog":
        return cls(settings.rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __iter__(self) -> Iterator[RoomDefinition]:
        return iter(self._rooms.values())

    def __len__(self) -> int:
        return len(self._rooms)

    @property
    def room_ids(self) -> List[str]:
        return list(self._rooms)

    def require(self, room_id: str) -> RoomDefinition:
        room = self._rooms.get(room_id)
        if room is None:
            raise InvalidRoom(
                f"Invalid room id '{room_id}'. Must be one of: {', '.join(self._rooms)}",
                room_id=room_id,
            )
        return room
