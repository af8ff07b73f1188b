"""Pydantic schemas for the realtime wire protocol and HTTP API."""

from .events import (
    EventKind,
    InboundKind,
    InboundMessage,
    InboundMessageError,
    OutboundEvent,
    parse_inbound,
)
from .presence import PresenceEntry, RoomPresenceResponse

__all__ = [
    "EventKind",
    "InboundKind",
    "InboundMessage",
    "InboundMessageError",
    "OutboundEvent",
    "parse_inbound",
    "PresenceEntry",
    "RoomPresenceResponse",
]
