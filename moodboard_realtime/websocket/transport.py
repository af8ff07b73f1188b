"""Session transports: how an outbound event reaches one client.

The broadcaster only ever calls :meth:`Transport.deliver`, which must not
suspend. The WebSocket transport satisfies that by putting events on a
bounded per-session outbox that a single writer task drains, so each
session receives events in exactly the order they were delivered.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import WebSocket

from ..schemas.events import OutboundEvent

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised when an event cannot be handed to a session."""


class Transport:
    """Interface between the broadcaster and live client connections."""

    def deliver(self, session_id: str, event: OutboundEvent) -> None:
        """
        Hand an event to one session without blocking.

        Raises:
            DeliveryError: If the session is gone or cannot accept the event
        """
        raise NotImplementedError


@dataclass
class SessionOutbox:
    """Outbound FIFO and writer task for one WebSocket."""

    session_id: str
    websocket: WebSocket
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    writer: Optional[asyncio.Task] = None
    closed: bool = False

    async def run(self) -> None:
        """Drain the queue onto the socket until closed or the socket fails."""
        try:
            while True:
                message: dict[str, Any] = await self.queue.get()
                await self.websocket.send_json(message)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"Outbox writer stopped: session={self.session_id}, error={e}")
        finally:
            self.closed = True


class WebSocketTransport(Transport):
    """
    Delivers events to FastAPI WebSockets through per-session outboxes.

    Args:
        max_pending: Bound on undelivered events per session; a full
            outbox rejects further events instead of growing without limit
    """

    def __init__(self, max_pending: int = 1000) -> None:
        """Initialize with no open sessions."""
        self._max_pending = max_pending
        self._outboxes: dict[str, SessionOutbox] = {}

    @property
    def open_sessions(self) -> int:
        """Get number of sessions with a live outbox."""
        return len(self._outboxes)

    def open(self, session_id: str, websocket: WebSocket) -> SessionOutbox:
        """
        Start the writer task for a newly accepted WebSocket.

        Must be called from within the running event loop.
        """
        outbox = SessionOutbox(
            session_id=session_id,
            websocket=websocket,
            queue=asyncio.Queue(maxsize=self._max_pending),
        )
        outbox.writer = asyncio.create_task(outbox.run())
        self._outboxes[session_id] = outbox
        return outbox

    async def close(self, session_id: str) -> None:
        """Stop the writer task for a session; pending events are dropped."""
        outbox = self._outboxes.pop(session_id, None)
        if outbox is None or outbox.writer is None:
            return

        outbox.writer.cancel()
        try:
            await outbox.writer
        except asyncio.CancelledError:
            pass

    def deliver(self, session_id: str, event: OutboundEvent) -> None:
        """Queue an event on the session's outbox."""
        outbox = self._outboxes.get(session_id)
        if outbox is None or outbox.closed:
            raise DeliveryError(f"session {session_id} is not connected")

        try:
            outbox.queue.put_nowait(event.to_wire())
        except asyncio.QueueFull:
            raise DeliveryError(f"outbox full for session {session_id}") from None
