# samvaad/services/redis_pub_sub.py
from __future__ import annotations

import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from samvaad.core.config import settings
from samvaad.core.logging import get_logger
from samvaad.services.connection_manager import ConnectionManager

logger = get_logger(__name__)

ROOM_CHANNEL_PREFIX = "room:"


class AsyncRedisPubSubService:
    """
    Fan-out across server processes through Redis Pub/Sub.

    Every process publishes chat frames to ``room:<room_id>`` and runs one
    listener on the ``room:*`` pattern that hands each frame to its own
    ConnectionManager. A single listener loop means frames for a room reach
    local connections in publish order.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        url: Optional[str] = None,
        client: Optional[redis.Redis] = None,
    ):
        self.connection_manager = connection_manager
        self.url = url or settings.redis_url
        self.client = client
        self.pubsub = None
        self.listening = False

    async def connect(self):
        """Establish async connection to Redis."""
        if self.client is None:
            self.client = redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        logger.info("✓ Connected to Redis pub/sub")

    async def publish(self, channel: str, message: dict):
        """Publish message to channel."""
        await self.client.publish(channel, json.dumps(message))
        logger.debug("📤 Published to Redis channel '%s'", channel)

    async def broadcast_to_room(self, room_id: str, message: dict):
        """
        Broadcast a frame to a room via its Redis channel.

        The listener (in this and every other process) receives it and
        forwards to the WebSocket connections joined to the room.
        """
        await self.publish(f"{ROOM_CHANNEL_PREFIX}{room_id}", message)

    async def handle(self, raw: str) -> None:
        """Route one published frame to local room members."""
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Redis message is not valid JSON - ignoring")
            return

        room_id = (frame.get("data") or {}).get("roomId")
        if not room_id:
            logger.warning("Redis message without roomId - ignoring")
            return

        await self.connection_manager.broadcast_to_room(room_id, frame)

    async def ping(self) -> bool:
        """Whether Redis answers; used by /health."""
        if self.client is None:
            return False
        try:
            await self.client.ping()
        except (RedisError, OSError) as e:
            logger.warning("Redis pub/sub ping failed: %s", e)
            return False
        return True

    async def listen(self, pattern: str = f"{ROOM_CHANNEL_PREFIX}*") -> bool:
        """
        Subscribe to every room channel and forward frames until cancelled.

        Returns:
            bool: False if the subscription was lost to a Redis error. The
            error is logged and ``self.listening`` is cleared so /health
            reports the outage.
        """
        self.pubsub = self.client.pubsub()
        try:
            await self.pubsub.psubscribe(pattern)
            logger.info("✓ Subscribed to Redis pattern '%s'", pattern)
            self.listening = True

            async for message in self.pubsub.listen():
                if message["type"] in ("message", "pmessage"):
                    try:
                        await self.handle(message["data"])
                    except Exception as e:
                        logger.error("Error processing Redis message: %s", e)
        except (RedisError, OSError) as e:
            logger.error("✗ Redis subscription lost, fan-out stopped: %s", e)
            return False
        finally:
            self.listening = False
        return True

    async def close(self):
        """Close connections."""
        try:
            if self.pubsub:
                await self.pubsub.punsubscribe()
        except (RedisError, OSError) as e:
            logger.warning("Redis punsubscribe failed: %s", e)
        finally:
            if self.pubsub:
                await self.pubsub.aclose()
            if self.client:
                await self.client.aclose()
        logger.info("Redis connection closed")
