from __future__ import annotations

from typing import Any, Dict, List, Optional

from parley_agents.rooms import RoomRegistry, StoreSessionRecorder


class SimulationAPI:
    """Facade translating room control and transcript queries into JSON payloads."""

    def __init__(self, registry: RoomRegistry, recorder: StoreSessionRecorder) -> None:
        self.registry = registry
        self.recorder = recorder

    # ------------------------------------------------------------------ #
    # Room control
    # ------------------------------------------------------------------ #

    async def start(self, room_id: str) -> Dict[str, Any]:
        result = await self.registry.start(room_id)
        return result.model_dump()

    def stop(self, room_id: str) -> Dict[str, Any]:
        self.registry.stop(room_id)
        return {"room_id": room_id, "status": "idle"}

    async def start_all(self) -> Dict[str, Any]:
        results = await self.registry.start_all()
        return {"started": [result.model_dump() for result in results]}

    def stop_all(self) -> Dict[str, Any]:
        return {"stopped": self.registry.stop_all()}

    def acknowledge(self, room_id: str, *, sequence: Optional[int] = None) -> Dict[str, Any]:
        return {"room_id": room_id, "acknowledged": self.registry.acknowledge(room_id, sequence=sequence)}

    def status(self) -> Dict[str, Any]:
        return {"rooms": [snapshot.model_dump() for snapshot in self.registry.snapshot_all()]}

    # ------------------------------------------------------------------ #
    # Transcripts
    # ------------------------------------------------------------------ #

    async def sessions_for_room(self, room_id: str, *, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        self.registry.catalog.require(room_id)
        page = max(1, page)
        limit = min(max(1, limit), 100)
        sessions, total = await self.recorder.list_sessions(room_id, page=page, limit=limit)
        skip = (page - 1) * limit
        return {
            "sessions": [session.to_dict() for session in sessions],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": -(-total // limit),
                "has_more": skip + len(sessions) < total,
            },
        }

    async def messages_for_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = await self.recorder.get_session(session_id)
        if session is None:
            return None
        messages = await self.recorder.list_messages(session_id)
        payload: List[Dict[str, Any]] = [message.to_dict() for message in messages]
        return {
            "session": session.to_dict(),
            "messages": payload,
            "message_count": len(payload),
        }
