"""Cross-worker relay over Redis pub/sub.

Local members always receive a broadcast synchronously from the worker
that produced it. The relay additionally publishes the event so other
workers can deliver it to the members connected to them, and publishes
every local presence change so each worker's tracker sees the same
entries. Publications carry the origin worker id; a worker ignores its own.

Two envelopes share the channel::

    {"origin", "room_id", "event", "exclude"}        # room broadcast
    {"origin", "room_id", "presence", "implicit"}    # tracker update
"""

import asyncio
import logging
from typing import Any, Optional
from uuid import uuid4

from pydantic import ValidationError

from ..schemas.events import OutboundEvent
from ..schemas.presence import PresenceEntry
from ..services.redis_service import RedisService
from .broadcaster import EventBroadcaster
from .gateway import SessionGateway
from .presence import UserPresence

logger = logging.getLogger(__name__)


class RedisRelay:
    """
    Publishes local broadcasts and presence changes, replays remote ones.

    Args:
        redis: Connected Redis service
        broadcaster: Broadcaster for local delivery of remote events
        gateway: Gateway whose tracker is kept in sync (optional)
        channel: Pub/sub channel shared by all workers
    """

    _BROADCAST_CHANNEL = "ws:broadcast"

    def __init__(
        self,
        redis: RedisService,
        broadcaster: EventBroadcaster,
        gateway: Optional[SessionGateway] = None,
        channel: Optional[str] = None,
    ) -> None:
        """Initialize the relay with a fresh origin id."""
        self.redis = redis
        self.broadcaster = broadcaster
        self.gateway = gateway
        self.channel = channel or self._BROADCAST_CHANNEL
        self.origin = uuid4().hex
        self._outgoing: asyncio.Queue = asyncio.Queue()
        self._publisher_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        """Check if the publisher task is active."""
        return self._publisher_task is not None

    async def start(self) -> None:
        """
        Hook into local fan-out and presence, then listen for other workers.

        If subscribing fails the relay is left half started; call
        :meth:`stop` to undo it.
        """
        if self.is_running:
            return

        self._publisher_task = asyncio.create_task(self._publish_loop())
        self.broadcaster.attach_relay(self)
        if self.gateway is not None:
            self.gateway.tracker.on_change = self.publish_presence

        await self.redis.listen(self.channel, self._handle_remote)
        logger.info(f"Relay started: origin={self.origin}, channel={self.channel}")

    async def stop(self) -> None:
        """Unhook from fan-out and presence, stop publishing and listening."""
        self.broadcaster.detach_relay()
        if self.gateway is not None and self.gateway.tracker.on_change == self.publish_presence:
            self.gateway.tracker.on_change = None

        if self._publisher_task is not None:
            self._publisher_task.cancel()
            try:
                await self._publisher_task
            except asyncio.CancelledError:
                pass
            self._publisher_task = None

        await self.redis.stop_listening()
        logger.info("Relay stopped")

    def publish(
        self,
        room_id: str,
        event: OutboundEvent,
        exclude: Optional[str] = None,
    ) -> None:
        """Queue a local broadcast for the other workers."""
        self._outgoing.put_nowait({
            "origin": self.origin,
            "room_id": room_id,
            "event": event.to_wire(),
            "exclude": exclude,
        })

    def publish_presence(self, room_id: str, entry: UserPresence, implicit: bool) -> None:
        """Queue a local presence change for the other workers."""
        self._outgoing.put_nowait({
            "origin": self.origin,
            "room_id": room_id,
            "presence": PresenceEntry.model_validate(entry).model_dump(mode="json"),
            "implicit": implicit,
        })

    async def _publish_loop(self) -> None:
        """Publish queued envelopes in order."""
        while True:
            message = await self._outgoing.get()
            try:
                await self.redis.publish(self.channel, message)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Relay publish failed for room {message['room_id']}: {e}")

    async def _handle_remote(self, data: dict[str, Any]) -> None:
        """
        Apply an envelope published by another worker.

        Args:
            data: Broadcast or presence envelope
        """
        if data.get("origin") == self.origin:
            return

        room_id = data.get("room_id")
        if not room_id:
            logger.warning("Ignoring relay message without a room")
            return

        if "presence" in data:
            self._apply_presence(room_id, data["presence"], bool(data.get("implicit")))
            return

        event = OutboundEvent.from_wire(data.get("event") or {})
        if event is None:
            logger.warning(f"Ignoring malformed relay event for room {room_id}")
            return

        self.broadcaster.deliver_local(room_id, event, exclude=data.get("exclude"))

    def _apply_presence(self, room_id: str, raw: Any, implicit: bool) -> None:
        if self.gateway is None:
            return

        try:
            entry = PresenceEntry.model_validate(raw)
        except ValidationError:
            logger.warning(f"Ignoring malformed relay presence for room {room_id}")
            return

        self.gateway.apply_remote_presence(
            room_id,
            UserPresence(
                user_id=entry.user_id,
                username=entry.username,
                is_online=entry.is_online,
                last_seen=entry.last_seen,
            ),
            implicit=implicit,
        )
