"""Assembly of the realtime components for one worker process."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..config import Settings, settings
from ..utils.clock import Clock
from .broadcaster import EventBroadcaster
from .gateway import SessionGateway
from .presence import PresenceTracker
from .registry import RoomRegistry
from .relay import RedisRelay
from .transport import WebSocketTransport


@dataclass
class RealtimeHub:
    """Registry, tracker, transport, broadcaster and gateway wired together."""

    registry: RoomRegistry
    tracker: PresenceTracker
    transport: WebSocketTransport
    broadcaster: EventBroadcaster
    gateway: SessionGateway
    relay: Optional[RedisRelay] = None


def create_hub(config: Optional[Settings] = None, clock: Optional[Clock] = None) -> RealtimeHub:
    """
    Build an isolated set of realtime components.

    Args:
        config: Settings to read limits from (defaults to global settings)
        clock: Optional clock shared by the tracker and the gateway

    Returns:
        RealtimeHub: Fresh components with no sessions or rooms
    """
    config = config or settings
    registry = RoomRegistry()
    tracker = PresenceTracker(clock=clock)
    transport = WebSocketTransport(max_pending=config.ws_outbox_size)
    broadcaster = EventBroadcaster(registry, transport)
    gateway = SessionGateway(
        registry,
        tracker,
        broadcaster,
        clock=clock,
        presence_offline_on_disconnect=config.presence_offline_on_disconnect,
    )
    return RealtimeHub(
        registry=registry,
        tracker=tracker,
        transport=transport,
        broadcaster=broadcaster,
        gateway=gateway,
    )


def get_hub(request: Request) -> RealtimeHub:
    """FastAPI dependency for the application's realtime hub."""
    return request.app.state.hub
