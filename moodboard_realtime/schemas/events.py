"""Pydantic schemas for the collaboration wire protocol.

Inbound frames are ``{"kind": ..., ...fields}`` objects sent by the web
client; outbound frames are ``{"kind", "payload", "timestamp"}`` envelopes.
Field names on the wire are camelCase to match the browser client.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..utils.clock import isoformat


class InboundKind(str, Enum):
    """Client -> server message kinds."""

    JOIN_PROJECT = "joinProject"
    LEAVE_PROJECT = "leaveProject"
    SET_PRESENCE = "setPresence"
    UPDATE_PROJECT = "updateProject"
    MOVE_IMAGE = "moveImage"
    UPDATE_PALETTE = "updatePalette"
    UPDATE_MOOD_PARAMS = "updateMoodParams"
    TYPING = "typing"
    SEND_MESSAGE = "sendMessage"


class EventKind(str, Enum):
    """Server -> client event kinds."""

    USER_JOINED = "userJoined"
    USER_LEFT = "userLeft"
    USER_PRESENCE = "userPresence"
    PROJECT_UPDATED = "projectUpdated"
    IMAGE_MOVED = "imageMoved"
    PALETTE_UPDATED = "paletteUpdated"
    MOOD_PARAMS_UPDATED = "moodParamsUpdated"
    USER_TYPING = "userTyping"
    NEW_MESSAGE = "newMessage"
    USER_DISCONNECTED = "userDisconnected"


class InboundMessageError(ValueError):
    """Raised when an inbound frame cannot be turned into a known message."""


# ============================================================================
# Inbound messages
# ============================================================================


class InboundMessage(BaseModel):
    """Base for every client message: all of them target one room."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    kind: InboundKind
    room: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("room", "projectId"),
        description="Project id of the target room",
    )


class JoinProjectIn(InboundMessage):
    kind: InboundKind = InboundKind.JOIN_PROJECT


class LeaveProjectIn(InboundMessage):
    kind: InboundKind = InboundKind.LEAVE_PROJECT


class SetPresenceIn(InboundMessage):
    kind: InboundKind = InboundKind.SET_PRESENCE
    user_id: str = Field(..., alias="userId", min_length=1)
    username: str
    is_online: bool = Field(..., alias="isOnline")


class UpdateProjectIn(InboundMessage):
    kind: InboundKind = InboundKind.UPDATE_PROJECT
    user_id: str = Field(..., alias="userId", min_length=1)
    update_type: str = Field(..., alias="updateType")
    update_data: Any = Field(..., alias="updateData")


class MoveImageIn(InboundMessage):
    kind: InboundKind = InboundKind.MOVE_IMAGE
    user_id: str = Field(..., alias="userId", min_length=1)
    image_id: Union[str, int] = Field(..., alias="imageId")
    position: dict[str, Any]


class UpdatePaletteIn(InboundMessage):
    kind: InboundKind = InboundKind.UPDATE_PALETTE
    user_id: str = Field(..., alias="userId", min_length=1)
    palette_data: dict[str, Any] = Field(..., alias="paletteData")


class UpdateMoodParamsIn(InboundMessage):
    kind: InboundKind = InboundKind.UPDATE_MOOD_PARAMS
    user_id: str = Field(..., alias="userId", min_length=1)
    mood_params: dict[str, Any] = Field(..., alias="moodParams")


class TypingIn(InboundMessage):
    kind: InboundKind = InboundKind.TYPING
    user_id: str = Field(..., alias="userId", min_length=1)
    is_typing: bool = Field(..., alias="isTyping")


class SendMessageIn(InboundMessage):
    kind: InboundKind = InboundKind.SEND_MESSAGE
    user_id: str = Field(..., alias="userId", min_length=1)
    username: str
    message: str


INBOUND_MODELS: dict[InboundKind, type[InboundMessage]] = {
    InboundKind.JOIN_PROJECT: JoinProjectIn,
    InboundKind.LEAVE_PROJECT: LeaveProjectIn,
    InboundKind.SET_PRESENCE: SetPresenceIn,
    InboundKind.UPDATE_PROJECT: UpdateProjectIn,
    InboundKind.MOVE_IMAGE: MoveImageIn,
    InboundKind.UPDATE_PALETTE: UpdatePaletteIn,
    InboundKind.UPDATE_MOOD_PARAMS: UpdateMoodParamsIn,
    InboundKind.TYPING: TypingIn,
    InboundKind.SEND_MESSAGE: SendMessageIn,
}


def parse_inbound(data: Any) -> InboundMessage:
    """
    Validate a decoded JSON frame into its typed message.

    Args:
        data: The decoded frame

    Returns:
        InboundMessage: The concrete message model for ``data["kind"]``

    Raises:
        InboundMessageError: If the frame is not an object, the kind is
            unknown, or a required field is missing or mistyped
    """
    if not isinstance(data, dict):
        raise InboundMessageError("frame must be a JSON object")

    try:
        kind = InboundKind(data.get("kind"))
    except ValueError:
        raise InboundMessageError(f"unknown message kind: {data.get('kind')!r}") from None

    try:
        return INBOUND_MODELS[kind].model_validate(data)
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) for err in e.errors()
        )
        raise InboundMessageError(f"invalid {kind.value} message: {fields}") from e


# ============================================================================
# Outbound events
# ============================================================================


class OutboundEvent(BaseModel):
    """Server-stamped event delivered to room members."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(..., description="ISO-8601 server time")

    @classmethod
    def build(
        cls,
        kind: EventKind,
        payload: dict[str, Any],
        now: datetime,
        stamp_payload: bool = True,
    ) -> "OutboundEvent":
        """
        Create an event stamped with the server time.

        Args:
            kind: The event kind
            payload: Kind-specific payload
            now: Server time to stamp
            stamp_payload: Also copy the timestamp into the payload,
                which is where the web client reads it from

        Returns:
            OutboundEvent: The envelope
        """
        stamp = isoformat(now)
        if stamp_payload:
            payload = {**payload, "timestamp": stamp}
        return cls(kind=kind, payload=payload, timestamp=stamp)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready envelope."""
        return self.model_dump(mode="json")

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> Optional["OutboundEvent"]:
        """Rebuild an event relayed from another worker, or None if invalid."""
        try:
            return cls.model_validate(data)
        except ValidationError:
            return None
