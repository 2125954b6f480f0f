# samvaad/services/message_store.py

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from samvaad.core.config import settings
from samvaad.core.errors import StoreUnavailable, ValidationError
from samvaad.core.logging import get_logger
from samvaad.models.models import Message

logger = get_logger(__name__)


def validate_body(body: str) -> str:
    """Return the body unchanged, or raise ValidationError if it is blank."""
    if body is None or not body.strip():
        raise ValidationError("Message body must not be empty")
    return body


def _ordered(messages: List[Message]) -> List[Message]:
    # sorted() is stable, so equal timestamps keep insertion order
    return sorted(messages, key=lambda m: m.timestamp)


# ============================================================================
# MESSAGE STORE INTERFACE
# ============================================================================

class MessageStore:
    """
    Durable, append-only chat history keyed by room id.

    Rooms are never stored as entities of their own: a room's history is
    simply every message whose room_id matches.
    """

    async def connect(self) -> None:
        """Open any backing connection. No-op by default."""

    async def close(self) -> None:
        """Release any backing connection. No-op by default."""

    async def ping(self) -> bool:
        """Whether the backing storage is reachable."""
        return True

    async def append(
        self,
        room_id: str,
        sender_id: str,
        body: str,
        timestamp: datetime,
        client_id: Optional[str] = None,
    ) -> Message:
        raise NotImplementedError

    async def list_by_room(self, room_id: str) -> List[Message]:
        raise NotImplementedError


class InMemoryMessageStore(MessageStore):
    """Process-local store used in development and tests."""

    def __init__(self) -> None:
        self.rooms: Dict[str, List[Message]] = {}

    async def append(self, room_id, sender_id, body, timestamp, client_id=None) -> Message:
        validate_body(body)
        message = Message(
            id=uuid.uuid4().hex,
            room_id=room_id,
            sender_id=sender_id,
            body=body,
            timestamp=timestamp,
        )
        self.rooms.setdefault(room_id, []).append(message)
        return message.model_copy(update={"client_id": client_id})

    async def list_by_room(self, room_id: str) -> List[Message]:
        return _ordered(list(self.rooms.get(room_id, [])))


class RedisMessageStore(MessageStore):
    """
    Redis-backed history.

    Storage layout:
        messages:<room_id>   list of JSON-encoded messages, append order
        messages:next_id     INCR counter used for persisted ids

    Any Redis failure is surfaced as StoreUnavailable so callers never have
    to know which backend is configured.
    """

    KEY_PREFIX = "messages:"
    COUNTER_KEY = "messages:next_id"

    def __init__(self, url: Optional[str] = None, client: Optional[redis.Redis] = None) -> None:
        self.url = url or settings.redis_url
        self.client = client

    async def connect(self) -> None:
        if self.client is None:
            self.client = redis.from_url(self.url, decode_responses=True)
        try:
            await self.client.ping()
        except RedisError as e:
            raise StoreUnavailable(f"Redis unreachable: {e}") from e
        logger.info("✓ Message store connected to Redis")

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            await self.client.ping()
        except RedisError as e:
            logger.warning("Message store ping failed: %s", e)
            return False
        return True

    def _key(self, room_id: str) -> str:
        return f"{self.KEY_PREFIX}{room_id}"

    async def append(self, room_id, sender_id, body, timestamp, client_id=None) -> Message:
        validate_body(body)
        if self.client is None:
            raise StoreUnavailable("Message store is not connected")
        try:
            message_id = await self.client.incr(self.COUNTER_KEY)
            message = Message(
                id=str(message_id),
                room_id=room_id,
                sender_id=sender_id,
                body=body,
                timestamp=timestamp,
            )
            await self.client.rpush(self._key(room_id), message.model_dump_json())
        except RedisError as e:
            logger.error("Failed to persist message for room %s: %s", room_id, e)
            raise StoreUnavailable(f"Could not persist message: {e}") from e
        # client_id is a per-send correlation key, never persisted
        return message.model_copy(update={"client_id": client_id})

    async def list_by_room(self, room_id: str) -> List[Message]:
        if self.client is None:
            raise StoreUnavailable("Message store is not connected")
        try:
            raw = await self.client.lrange(self._key(room_id), 0, -1)
        except RedisError as e:
            logger.error("Failed to load history for room %s: %s", room_id, e)
            raise StoreUnavailable(f"Could not load history: {e}") from e
        return _ordered([Message.model_validate_json(item) for item in raw])


def create_message_store() -> MessageStore:
    """Build the store selected by MESSAGE_STORE."""
    if settings.MESSAGE_STORE == "redis":
        return RedisMessageStore()
    return InMemoryMessageStore()
