"""Redis connection used by the cross-worker broadcast relay.

Each worker holds only the sockets connected to it, so room broadcasts and
presence changes travel between workers over one pub/sub channel. The
service owns that channel's subscription: frames are decoded from JSON and
handed, one at a time and in arrival order, to a single async handler.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub

from ..config import settings

logger = logging.getLogger(__name__)

# Receives each decoded JSON object published on the subscribed channel
ChannelHandler = Callable[[dict[str, Any]], Awaitable[None]]


class RedisService:
    """
    Async Redis client plus a single channel subscription.

    ``connect`` opens a pooled client; ``listen`` subscribes one channel and
    starts the reader task; ``stop_listening`` and ``disconnect`` undo them.
    """

    def __init__(self) -> None:
        """Initialize the service (not connected yet)."""
        self._redis: Optional[aioredis.Redis] = None
        self._pubsub: Optional[PubSub] = None
        self._reader: Optional[asyncio.Task] = None
        self._channel: Optional[str] = None
        self._handler: Optional[ChannelHandler] = None

    @property
    def client(self) -> aioredis.Redis:
        """Get the Redis client, failing if not connected."""
        if self._redis is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._redis

    @property
    def is_connected(self) -> bool:
        """Check if a client passed its connection check."""
        return self._redis is not None

    @property
    def channel(self) -> Optional[str]:
        """Get the channel currently listened to, if any."""
        return self._channel

    async def connect(self, url: Optional[str] = None) -> None:
        """
        Open a pooled client and check it with PING.

        A client that fails the check is closed and not kept.

        Args:
            url: Redis URL (defaults to ``settings.redis_url``)

        Raises:
            RuntimeError: If no URL is configured
        """
        url = url or settings.redis_url
        if not url:
            raise RuntimeError("Redis URL is not configured")

        client = aioredis.from_url(
            url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            retry_on_timeout=settings.redis_retry_on_timeout,
            decode_responses=True,
        )
        try:
            await client.ping()
        except Exception:
            await client.aclose()
            raise

        self._redis = client
        logger.info("Redis connected successfully")

    async def disconnect(self) -> None:
        """Stop listening and close the client."""
        await self.stop_listening()
        if self._redis is None:
            return

        client, self._redis = self._redis, None
        await client.aclose()
        logger.info("Redis disconnected")

    async def publish(self, channel: str, message: dict[str, Any]) -> int:
        """
        Publish one JSON object.

        Returns:
            int: Number of subscribers that received it
        """
        return await self.client.publish(channel, json.dumps(message))

    async def listen(self, channel: str, handler: ChannelHandler) -> None:
        """
        Subscribe to a channel and start delivering its messages.

        Args:
            channel: The channel to subscribe to
            handler: Coroutine called with each decoded message

        Raises:
            RuntimeError: If already listening, or not connected
        """
        if self._reader is not None:
            raise RuntimeError(f"Already listening on {self._channel}")

        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(channel)

        self._pubsub = pubsub
        self._channel = channel
        self._handler = handler
        self._reader = asyncio.create_task(self._read_loop(pubsub))
        logger.info(f"Listening on Redis channel {channel}")

    async def stop_listening(self) -> None:
        """Cancel the reader task and drop the subscription."""
        reader, self._reader = self._reader, None
        if reader is not None:
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        pubsub, self._pubsub = self._pubsub, None
        if pubsub is not None:
            try:
                await pubsub.unsubscribe()
            finally:
                await pubsub.aclose()
            logger.info(f"Stopped listening on Redis channel {self._channel}")

        self._channel = None
        self._handler = None

    async def _read_loop(self, pubsub: PubSub) -> None:
        """Read messages until cancelled; read errors back off for a second."""
        while True:
            try:
                message = await pubsub.get_message(timeout=1.0)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Redis channel read failed on {self._channel}: {e}")
                await asyncio.sleep(1)
                continue

            if message is not None and message["type"] == "message":
                await self._dispatch(message["data"])

    async def _dispatch(self, raw: str) -> None:
        """Decode one published frame and hand it to the handler."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON on channel {self._channel}")
            return
        if not isinstance(data, dict):
            logger.warning(f"Non-object message on channel {self._channel}")
            return
        if self._handler is None:
            return

        try:
            await self._handler(data)
        except Exception as e:
            logger.error(f"Handler error on {self._channel}: {e}")

    async def health_check(self) -> dict[str, Any]:
        """
        Get Redis health status and stats.

        Returns:
            Dictionary with connection status, memory use and the relay channel
        """
        if not self.is_connected:
            return {"status": "disconnected"}

        try:
            info = await self.client.info("memory")
        except Exception as e:
            return {"status": "error", "error": str(e)}

        return {
            "status": "healthy",
            "used_memory_human": info.get("used_memory_human", "unknown"),
            "channel": self._channel,
        }


# Global singleton instance
redis_service = RedisService()
