"""Event fan-out to the members of a project room."""

import logging
from typing import Optional

from ..schemas.events import OutboundEvent
from .registry import RoomRegistry
from .transport import Transport

logger = logging.getLogger(__name__)


class EventBroadcaster:
    """
    Delivers outbound events to every session in a room.

    Delivery is synchronous: each recipient's transport accepts (or
    rejects) the event before the next one is tried, so the per-session
    order matches the order of broadcast calls. A recipient that fails is
    logged and skipped.

    Args:
        registry: Room membership lookup
        transport: Per-session delivery
    """

    def __init__(self, registry: RoomRegistry, transport: Transport) -> None:
        """Initialize the broadcaster without a cross-worker relay."""
        self.registry = registry
        self.transport = transport
        self._relay = None

    def attach_relay(self, relay) -> None:
        """Also publish every broadcast to other workers through ``relay``."""
        self._relay = relay

    def detach_relay(self) -> None:
        """Go back to local-only delivery."""
        self._relay = None

    def broadcast_to_room(
        self,
        room_id: str,
        event: OutboundEvent,
        exclude: Optional[str] = None,
    ) -> int:
        """
        Broadcast an event to a room, optionally skipping one session.

        Args:
            room_id: The room to broadcast to
            event: The event to deliver
            exclude: Session id that must not receive the event (the sender)

        Returns:
            int: Number of local successful deliveries
        """
        delivered = self.deliver_local(room_id, event, exclude=exclude)

        if self._relay is not None:
            self._relay.publish(room_id, event, exclude=exclude)

        return delivered

    def emit_to_room(self, room_id: str, event: OutboundEvent) -> int:
        """Broadcast an event to every session in a room, sender included."""
        return self.broadcast_to_room(room_id, event)

    def deliver_local(
        self,
        room_id: str,
        event: OutboundEvent,
        exclude: Optional[str] = None,
    ) -> int:
        """
        Deliver to members connected to this worker only.

        Args:
            room_id: The room to deliver to
            event: The event to deliver
            exclude: Session id to skip

        Returns:
            int: Number of successful deliveries
        """
        recipients = self.registry.members_of(room_id)
        if exclude is not None:
            recipients = recipients - {exclude}

        success_count = 0
        for session_id in recipients:
            try:
                self.transport.deliver(session_id, event)
            except Exception as e:
                logger.warning(
                    f"Delivery failed: room={room_id}, session={session_id}, "
                    f"kind={event.kind.value}, error={e}"
                )
                continue
            success_count += 1

        logger.debug(
            f"Broadcast {event.kind.value} to room {room_id}: "
            f"{success_count}/{len(recipients)} successful"
        )
        return success_count
