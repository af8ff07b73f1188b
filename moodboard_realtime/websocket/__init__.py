"""WebSocket module for real-time collaboration."""

from .broadcaster import EventBroadcaster
from .gateway import Session, SessionGateway
from .hub import RealtimeHub, create_hub, get_hub
from .presence import PresenceTracker, UserPresence
from .registry import RoomRegistry
from .relay import RedisRelay
from .transport import DeliveryError, SessionOutbox, Transport, WebSocketTransport

__all__ = [
    # Registry
    "RoomRegistry",
    # Presence
    "PresenceTracker",
    "UserPresence",
    # Delivery
    "DeliveryError",
    "EventBroadcaster",
    "SessionOutbox",
    "Transport",
    "WebSocketTransport",
    "RedisRelay",
    # Assembly
    "RealtimeHub",
    "create_hub",
    "get_hub",
    # Gateway
    "Session",
    "SessionGateway",
]
