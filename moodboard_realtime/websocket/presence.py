"""Presence tracking for project rooms.

Presence is whatever clients last reported through ``setPresence`` (and,
when enabled, the offline flip performed on leave or disconnect). Entries
are replaced wholesale on every update and never expire on their own.

With the Redis relay running, every local change is handed to the
``on_change`` hook and published, and changes made on other workers are
stored through :meth:`PresenceTracker.apply`. Each worker's tracker then
converges on the same last-written entries.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserPresence:
    """User presence information within one room."""

    user_id: str
    username: str
    is_online: bool
    last_seen: datetime


PresenceListener = Callable[[str, UserPresence, bool], None]


class PresenceTracker:
    """
    In-memory presence store keyed by (room, user).

    Args:
        clock: Source of ``last_seen`` timestamps (defaults to UTC now)
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        """Initialize an empty tracker."""
        self._clock: Clock = clock or utc_now
        # Map of room_id -> user_id -> presence
        self._presence: dict[str, dict[str, UserPresence]] = {}
        # Called with (room_id, entry, implicit) after every local update
        self.on_change: Optional[PresenceListener] = None

    def set_presence(
        self,
        room_id: str,
        user_id: str,
        username: str,
        is_online: bool,
        implicit: bool = False,
    ) -> UserPresence:
        """
        Upsert a user's presence in a room.

        Args:
            room_id: The room to update presence in
            user_id: The user's ID
            username: The user's display name
            is_online: Whether the user reports being online
            implicit: True for the offline flip made when a session leaves,
                rather than a client report

        Returns:
            UserPresence: The stored entry
        """
        entry = UserPresence(
            user_id=user_id,
            username=username,
            is_online=is_online,
            last_seen=self._clock(),
        )
        self._store(room_id, entry)
        if self.on_change is not None:
            self.on_change(room_id, entry, implicit)
        return entry

    def apply(self, room_id: str, entry: UserPresence) -> None:
        """Store an entry produced by another worker without re-announcing it."""
        self._store(room_id, entry)

    def _store(self, room_id: str, entry: UserPresence) -> None:
        self._presence.setdefault(room_id, {})[entry.user_id] = entry
        logger.debug(
            f"Presence set: room={room_id}, user={entry.user_id}, online={entry.is_online}"
        )

    def get(self, room_id: str, user_id: str) -> Optional[UserPresence]:
        """Get one user's presence in a room, if any was reported."""
        return self._presence.get(room_id, {}).get(user_id)

    def presence_of(
        self,
        room_id: str,
        online_only: bool = False,
    ) -> list[UserPresence]:
        """
        Get the latest presence entries for a room.

        Args:
            room_id: The room to query
            online_only: Skip users whose last report was offline

        Returns:
            list[UserPresence]: Entries ordered by user id
        """
        users = self._presence.get(room_id, {})
        return [
            users[user_id]
            for user_id in sorted(users)
            if users[user_id].is_online or not online_only
        ]
