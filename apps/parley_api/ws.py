"""WebSocket channel: room events out, join and ack commands in."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from parley_agents.rooms import InvalidRoom, RoomBroadcaster, RoomRegistry, Subscription

logger = logging.getLogger(__name__)


class ClientMessage(BaseModel):
    """Client payload sent over the room WebSocket."""

    type: str
    content: Dict[str, Any] = {}


class RoomSocketHandlers:
    """Serves one WebSocket connection for the room dashboard and detail views."""

    def __init__(self, websocket: WebSocket, registry: RoomRegistry, broadcaster: RoomBroadcaster) -> None:
        self.websocket = websocket
        self.registry = registry
        self.broadcaster = broadcaster
        self._send_lock = asyncio.Lock()

    async def serve(self) -> None:
        await self.websocket.accept()
        subscription = self.broadcaster.subscribe()
        pump = asyncio.create_task(self._pump(subscription))
        logger.info("Client connected")

        try:
            while True:
                raw = await self.websocket.receive_text()
                await self.handle(raw, subscription)
        except WebSocketDisconnect:
            logger.info("Client disconnected")
        finally:
            self.broadcaster.unsubscribe(subscription)
            pump.cancel()
            await asyncio.gather(pump, return_exceptions=True)

    async def handle(self, raw: str, subscription: Subscription) -> None:
        try:
            message = ClientMessage.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            await self._send("error", {"message": f"Malformed message: {exc}"})
            return

        room_id = str(message.content.get("room_id") or "")

        if message.type == "join_room":
            if room_id not in self.registry.catalog:
                await self._send("error", {"message": f"Invalid room_id: {room_id}"})
                return
            subscription.join_room(room_id)
            logger.debug("Socket joined %s", room_id)
            await self._send("joined_room", {"room_id": room_id})
        elif message.type == "join_dashboard":
            subscription.join_rooms(self.registry.catalog.room_ids)
            logger.debug("Socket joined dashboard (all rooms)")
            await self._send("joined_dashboard", {"rooms": self.registry.catalog.room_ids})
        elif message.type == "tts_done":
            sequence = message.content.get("sequence")
            if sequence is not None and not isinstance(sequence, int):
                await self._send("error", {"message": f"Invalid sequence: {sequence!r}"})
                return
            try:
                self.registry.acknowledge(room_id, sequence=sequence)
            except InvalidRoom as exc:
                await self._send("error", {"message": str(exc)})
        else:
            await self._send("error", {"message": f"Unknown message type: {message.type}"})

    async def _pump(self, subscription: Subscription) -> None:
        while True:
            event_type, payload = await subscription.get()
            await self._send(event_type, payload)

    async def _send(self, event_type: str, content: Dict[str, Any]) -> None:
        async with self._send_lock:
            await self.websocket.send_json({"type": event_type, "content": content})
