"""Fan-out of room events to in-process listeners."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Protocol, Set, Tuple

from .messages import RoomStatusEvent, TurnEvent

logger = logging.getLogger(__name__)

NEW_MESSAGE = "new_message"
ROOM_UPDATE = "room_update"

BroadcastEvent = Tuple[str, Dict[str, Any]]


class EventBroadcaster(Protocol):
    """Fire-and-forget sink for room events. Implementations must not block or raise."""

    def publish_turn(self, event: TurnEvent) -> None: ...

    def publish_room_status(self, event: RoomStatusEvent) -> None: ...


@dataclass(eq=False)
class Subscription:
    """One listener: a bounded queue plus the rooms it follows."""

    queue: "asyncio.Queue[BroadcastEvent]"
    rooms: Set[str] = field(default_factory=set)
    dropped: int = 0

    def join_room(self, room_id: str) -> None:
        self.rooms = {room_id}

    def join_rooms(self, room_ids: Iterable[str]) -> None:
        self.rooms = set(room_ids)

    async def get(self) -> BroadcastEvent:
        return await self.queue.get()

    def offer(self, event: BroadcastEvent) -> bool:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True


class RoomBroadcaster:
    """Delivers turn events to a room's followers and status events to everyone."""

    def __init__(self, *, queue_size: int = 256) -> None:
        self.queue_size = queue_size
        self._subscriptions: List[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> Subscription:
        subscription = Subscription(queue=asyncio.Queue(maxsize=self.queue_size))
        self._subscriptions.append(subscription)
        logger.debug("Subscriber added (total=%d)", len(self._subscriptions))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug("Subscriber removed (total=%d)", len(self._subscriptions))

    def publish_turn(self, event: TurnEvent) -> None:
        payload = event.model_dump(mode="json")
        for subscription in list(self._subscriptions):
            if event.room_id in subscription.rooms:
                self._deliver(subscription, (NEW_MESSAGE, payload))

    def publish_room_status(self, event: RoomStatusEvent) -> None:
        payload = event.model_dump(mode="json")
        for subscription in list(self._subscriptions):
            self._deliver(subscription, (ROOM_UPDATE, payload))

    def _deliver(self, subscription: Subscription, event: BroadcastEvent) -> None:
        if not subscription.offer(event):
            logger.warning(
                "Dropped %s event for slow subscriber (dropped=%d)", event[0], subscription.dropped
            )
