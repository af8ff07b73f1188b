"""Room registry: which sessions are subscribed to which project rooms.

Rooms are created implicitly on first join and pruned as soon as their
member set is empty. The registry keeps a reverse index (session -> rooms)
so disconnect cleanup does not scan every room.
"""

import logging

logger = logging.getLogger(__name__)


class RoomRegistry:
    """
    In-memory room membership for one worker process.

    All operations are synchronous and total: unknown rooms and sessions
    are treated as empty, and join/leave are idempotent.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        # Map of room_id -> set of session ids
        self._rooms: dict[str, set[str]] = {}
        # Map of session_id -> set of room ids (reverse index)
        self._session_rooms: dict[str, set[str]] = {}

    @property
    def total_rooms(self) -> int:
        """Get number of rooms with at least one member."""
        return len(self._rooms)

    def room_count(self, room_id: str) -> int:
        """Get number of sessions in a room."""
        return len(self._rooms.get(room_id, ()))

    def join(self, room_id: str, session_id: str) -> bool:
        """
        Add a session to a room.

        Args:
            room_id: The room identifier (project id)
            session_id: The session identifier

        Returns:
            bool: True if the session was not already a member
        """
        members = self._rooms.setdefault(room_id, set())
        added = session_id not in members
        members.add(session_id)
        self._session_rooms.setdefault(session_id, set()).add(room_id)
        return added

    def leave(self, room_id: str, session_id: str) -> bool:
        """
        Remove a session from a room.

        Args:
            room_id: The room identifier (project id)
            session_id: The session identifier

        Returns:
            bool: True if the session was a member
        """
        members = self._rooms.get(room_id)
        removed = members is not None and session_id in members
        if members is not None:
            members.discard(session_id)
            if not members:
                del self._rooms[room_id]

        rooms = self._session_rooms.get(session_id)
        if rooms is not None:
            rooms.discard(room_id)
            if not rooms:
                del self._session_rooms[session_id]

        return removed

    def members_of(self, room_id: str) -> frozenset[str]:
        """Snapshot of the sessions currently in a room."""
        return frozenset(self._rooms.get(room_id, ()))

    def rooms_of(self, session_id: str) -> frozenset[str]:
        """Snapshot of the rooms a session currently belongs to."""
        return frozenset(self._session_rooms.get(session_id, ()))

    def remove_session(self, session_id: str) -> list[str]:
        """
        Remove a session from every room it belongs to.

        Args:
            session_id: The session identifier

        Returns:
            list[str]: Rooms the session was removed from (sorted)
        """
        rooms = sorted(self._session_rooms.get(session_id, ()))
        for room_id in rooms:
            self.leave(room_id, session_id)
        return rooms
