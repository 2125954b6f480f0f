# samvaad/services/chat_service.py

from __future__ import annotations

import asyncio
import weakref
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from samvaad.core.logging import get_logger
from samvaad.models.models import Message, SendMessageRequest
from samvaad.services.message_store import MessageStore, validate_body

logger = get_logger(__name__)


class RoomPublisher(Protocol):
    async def broadcast_to_room(self, room_id: str, message: dict): ...


class ChatService:
    """
    Persist-then-broadcast send path shared by the WebSocket and REST APIs.

    Flow:
        1. Reject blank bodies (ValidationError) before touching the store
        2. Append to the message store (StoreUnavailable propagates to the
           caller and nothing is broadcast)
        3. Broadcast a "receiveMessage" frame to the room, sender included

    Sends to the same room are serialized with a per-room lock, so the order
    messages are written is the order every member receives them. A broadcast
    failure after a successful write is logged and the message stays stored.
    """

    def __init__(self, store: MessageStore, publisher: RoomPublisher) -> None:
        self.store = store
        self.publisher = publisher
        self.message_count = 0
        self._room_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, room_id: str) -> asyncio.Lock:
        lock = self._room_locks.get(room_id)
        if lock is None:
            lock = asyncio.Lock()
            self._room_locks[room_id] = lock
        return lock

    async def send(self, request: SendMessageRequest, sender_id: Optional[str] = None) -> Message:
        """
        Store a message and fan it out to the room.

        Args:
            request: Incoming send payload
            sender_id: Authenticated caller; overrides request.sender_id

        Returns:
            The persisted message (with id, and the caller's client_id echoed)
        """
        validate_body(request.body)
        timestamp = request.timestamp or datetime.now(timezone.utc)

        lock = self._lock_for(request.room_id)
        async with lock:
            message = await self.store.append(
                request.room_id,
                sender_id or request.sender_id,
                request.body,
                timestamp,
                client_id=request.client_id,
            )
            self.message_count += 1

            frame = {"type": "receiveMessage", "data": message.to_wire()}
            try:
                await self.publisher.broadcast_to_room(message.room_id, frame)
            except Exception as e:
                logger.error("Broadcast failed for room %s (message %s stored): %s", message.room_id, message.id, e)

        return message

    async def history(self, room_id: str) -> List[Message]:
        """Room history oldest first; empty for a room nobody has written to."""
        return await self.store.list_by_room(room_id)
