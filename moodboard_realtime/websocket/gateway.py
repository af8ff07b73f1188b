"""Session gateway: connection lifecycle and inbound message dispatch.

Every inbound kind maps to one handler that updates the registry or the
presence tracker and fans the matching outbound event out through the
broadcaster. Handlers never reply to the sender; the only event a sender
sees for its own action is the echoed ``newMessage``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional
from uuid import uuid4

from ..schemas.events import (
    EventKind,
    InboundKind,
    InboundMessage,
    InboundMessageError,
    JoinProjectIn,
    LeaveProjectIn,
    MoveImageIn,
    OutboundEvent,
    SendMessageIn,
    SetPresenceIn,
    TypingIn,
    UpdateMoodParamsIn,
    UpdatePaletteIn,
    UpdateProjectIn,
    parse_inbound,
)
from ..utils.clock import Clock, utc_now
from .broadcaster import EventBroadcaster
from .presence import PresenceTracker, UserPresence
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """One live client connection."""

    session_id: str
    connected_at: datetime
    # Map of room_id -> user id the client last reported in that room
    identities: dict[str, str] = field(default_factory=dict)


class SessionGateway:
    """
    Binds sessions to rooms and turns client messages into broadcasts.

    Args:
        registry: Room membership
        tracker: Presence store
        broadcaster: Event fan-out
        clock: Source of server timestamps
        presence_offline_on_disconnect: Mark the identities a session
            reported as offline when it leaves a room or disconnects
    """

    def __init__(
        self,
        registry: RoomRegistry,
        tracker: PresenceTracker,
        broadcaster: EventBroadcaster,
        clock: Optional[Clock] = None,
        presence_offline_on_disconnect: bool = True,
    ) -> None:
        """Initialize the gateway with no sessions."""
        self.registry = registry
        self.tracker = tracker
        self.broadcaster = broadcaster
        self._clock: Clock = clock or utc_now
        self._presence_offline_on_disconnect = presence_offline_on_disconnect
        self._sessions: dict[str, Session] = {}
        self._handlers: dict[InboundKind, Callable[[Session, Any], None]] = {
            InboundKind.JOIN_PROJECT: self._handle_join_project,
            InboundKind.LEAVE_PROJECT: self._handle_leave_project,
            InboundKind.SET_PRESENCE: self._handle_set_presence,
            InboundKind.UPDATE_PROJECT: self._handle_update_project,
            InboundKind.MOVE_IMAGE: self._handle_move_image,
            InboundKind.UPDATE_PALETTE: self._handle_update_palette,
            InboundKind.UPDATE_MOOD_PARAMS: self._handle_update_mood_params,
            InboundKind.TYPING: self._handle_typing,
            InboundKind.SEND_MESSAGE: self._handle_send_message,
        }

    @property
    def total_connections(self) -> int:
        """Get number of connected sessions."""
        return len(self._sessions)

    def get_session(self, session_id: str) -> Optional[Session]:
        """Get a connected session by id."""
        return self._sessions.get(session_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def connect(self, session_id: Optional[str] = None) -> Session:
        """
        Register a new connection.

        Args:
            session_id: Connection id to use (a random one when omitted)

        Returns:
            Session: The registered session
        """
        session = Session(
            session_id=session_id or uuid4().hex,
            connected_at=self._clock(),
        )
        self._sessions[session.session_id] = session
        logger.info(
            f"Session connected: session={session.session_id}, "
            f"total_connections={self.total_connections}"
        )
        return session

    def disconnect(self, session_id: str) -> list[str]:
        """
        Tear down a session and notify every room it was in.

        Safe to call more than once; only the first call has any effect.

        Args:
            session_id: The session to disconnect

        Returns:
            list[str]: Rooms that were sent ``userDisconnected``
        """
        session = self._sessions.pop(session_id, None)
        rooms = self.registry.remove_session(session_id)
        if session is None and not rooms:
            return []

        identities = session.identities if session else {}
        for room_id in rooms:
            user_id = identities.get(room_id)
            username = self._mark_offline(room_id, user_id) if user_id else None

            payload: dict[str, Any] = {"userId": session_id, "projectId": room_id}
            if user_id:
                payload["reportedUserId"] = user_id
            if username is not None:
                payload["username"] = username

            self.broadcaster.broadcast_to_room(
                room_id,
                self._event(EventKind.USER_DISCONNECTED, payload),
            )

        logger.info(
            f"Session disconnected: session={session_id}, rooms={len(rooms)}, "
            f"total_connections={self.total_connections}"
        )
        return rooms

    def _mark_offline(self, room_id: str, user_id: str) -> Optional[str]:
        """
        Flip the presence of an identity whose session left the room.

        Skipped when another session in the room still reports the same
        user (a second tab). Returns the known username, if any.
        """
        entry = self.tracker.get(room_id, user_id)
        if entry is None:
            return None
        if not self._presence_offline_on_disconnect or not entry.is_online:
            return entry.username
        if self._reported_locally(room_id, user_id):
            return entry.username

        self.tracker.set_presence(room_id, user_id, entry.username, False, implicit=True)
        return entry.username

    def _reported_locally(self, room_id: str, user_id: str) -> bool:
        """Check if a session joined to the room on this worker reports the user."""
        for member_id in self.registry.members_of(room_id):
            member = self._sessions.get(member_id)
            if member is not None and member.identities.get(room_id) == user_id:
                return True
        return False

    def apply_remote_presence(
        self,
        room_id: str,
        entry: UserPresence,
        implicit: bool = False,
    ) -> None:
        """
        Record a presence change made on another worker.

        An offline flip for a user that a local session in the room still
        reports is refused, and the local online entry is announced again so
        the other workers converge back to it. Client reports always win.

        Args:
            room_id: The room the entry belongs to
            entry: The remote worker's stored entry
            implicit: Whether the remote entry is a leave or disconnect flip
        """
        if implicit and not entry.is_online and self._reported_locally(room_id, entry.user_id):
            current = self.tracker.get(room_id, entry.user_id)
            if current is not None and current.is_online:
                logger.debug(
                    f"Keeping {entry.user_id} online in {room_id}: reported by a local session"
                )
                self.tracker.set_presence(room_id, entry.user_id, current.username, True)
                return

        self.tracker.apply(room_id, entry)

    # =========================================================================
    # Inbound dispatch
    # =========================================================================

    def handle_message(self, session_id: str, data: Any) -> bool:
        """
        Validate and dispatch one decoded inbound frame.

        Malformed frames and frames from unknown sessions are logged and
        dropped.

        Args:
            session_id: The sending session
            data: The decoded JSON frame

        Returns:
            bool: True if the message was dispatched
        """
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning(f"Dropping message from unknown session {session_id}")
            return False

        try:
            message = parse_inbound(data)
        except InboundMessageError as e:
            logger.warning(f"Dropping malformed message: session={session_id}, {e}")
            return False

        logger.debug(
            f"Routing message: session={session_id}, kind={message.kind.value}, "
            f"room={message.room}"
        )
        self._handlers[message.kind](session, message)
        return True

    def _event(
        self,
        kind: EventKind,
        payload: dict[str, Any],
        stamp_payload: bool = True,
    ) -> OutboundEvent:
        return OutboundEvent.build(kind, payload, self._clock(), stamp_payload=stamp_payload)

    def _remember_identity(self, session: Session, message: InboundMessage) -> None:
        user_id = getattr(message, "user_id", None)
        if user_id:
            session.identities[message.room] = user_id

    def _handle_join_project(self, session: Session, message: JoinProjectIn) -> None:
        self.registry.join(message.room, session.session_id)
        logger.info(
            f"Session {session.session_id} joined project {message.room} "
            f"(room_size={self.registry.room_count(message.room)})"
        )
        self.broadcaster.broadcast_to_room(
            message.room,
            self._event(
                EventKind.USER_JOINED,
                {"userId": session.session_id, "projectId": message.room},
                stamp_payload=False,
            ),
            exclude=session.session_id,
        )

    def _handle_leave_project(self, session: Session, message: LeaveProjectIn) -> None:
        self.registry.leave(message.room, session.session_id)
        user_id = session.identities.pop(message.room, None)
        if user_id:
            self._mark_offline(message.room, user_id)
        logger.info(
            f"Session {session.session_id} left project {message.room} "
            f"(room_size={self.registry.room_count(message.room)})"
        )
        self.broadcaster.broadcast_to_room(
            message.room,
            self._event(
                EventKind.USER_LEFT,
                {"userId": session.session_id, "projectId": message.room},
                stamp_payload=False,
            ),
            exclude=session.session_id,
        )

    def _handle_set_presence(self, session: Session, message: SetPresenceIn) -> None:
        self._remember_identity(session, message)
        self.tracker.set_presence(
            message.room, message.user_id, message.username, message.is_online
        )
        self.broadcaster.broadcast_to_room(
            message.room,
            self._event(
                EventKind.USER_PRESENCE,
                {
                    "isOnline": message.is_online,
                    "userId": message.user_id,
                    "username": message.username,
                },
            ),
            exclude=session.session_id,
        )

    def _handle_update_project(self, session: Session, message: UpdateProjectIn) -> None:
        self._remember_identity(session, message)
        logger.info(f"Project update: {message.update_type} for project {message.room}")
        self.broadcaster.broadcast_to_room(
            message.room,
            self._event(
                EventKind.PROJECT_UPDATED,
                {
                    "updateType": message.update_type,
                    "updateData": message.update_data,
                    "userId": message.user_id,
                },
            ),
            exclude=session.session_id,
        )

    def _handle_move_image(self, session: Session, message: MoveImageIn) -> None:
        self._remember_identity(session, message)
        self.broadcaster.broadcast_to_room(
            message.room,
            self._event(
                EventKind.IMAGE_MOVED,
                {
                    "imageId": message.image_id,
                    "position": message.position,
                    "userId": message.user_id,
                },
            ),
            exclude=session.session_id,
        )

    def _handle_update_palette(self, session: Session, message: UpdatePaletteIn) -> None:
        self._remember_identity(session, message)
        self.broadcaster.broadcast_to_room(
            message.room,
            self._event(
                EventKind.PALETTE_UPDATED,
                {"paletteData": message.palette_data, "userId": message.user_id},
            ),
            exclude=session.session_id,
        )

    def _handle_update_mood_params(
        self, session: Session, message: UpdateMoodParamsIn
    ) -> None:
        self._remember_identity(session, message)
        self.broadcaster.broadcast_to_room(
            message.room,
            self._event(
                EventKind.MOOD_PARAMS_UPDATED,
                {"moodParams": message.mood_params, "userId": message.user_id},
            ),
            exclude=session.session_id,
        )

    def _handle_typing(self, session: Session, message: TypingIn) -> None:
        self._remember_identity(session, message)
        self.broadcaster.broadcast_to_room(
            message.room,
            self._event(
                EventKind.USER_TYPING,
                {"isTyping": message.is_typing, "userId": message.user_id},
            ),
            exclude=session.session_id,
        )

    def _handle_send_message(self, session: Session, message: SendMessageIn) -> None:
        self._remember_identity(session, message)
        # Echoed to the sender so every client renders the same chat log
        self.broadcaster.emit_to_room(
            message.room,
            self._event(
                EventKind.NEW_MESSAGE,
                {
                    "message": message.message,
                    "userId": message.user_id,
                    "username": message.username,
                },
            ),
        )
