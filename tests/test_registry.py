"""Unit tests for the room registry."""

from moodboard_realtime.websocket.registry import RoomRegistry


class TestRoomRegistryInit:
    """Tests for RoomRegistry initialization."""

    def test_registry_init(self):
        """A new registry has no rooms."""
        registry = RoomRegistry()

        assert registry.total_rooms == 0
        assert registry.members_of("proj1") == frozenset()
        assert registry.rooms_of("s1") == frozenset()


class TestRoomRegistryJoin:
    """Tests for joining rooms."""

    def test_join_room(self, registry):
        """After join, membership is visible from both sides."""
        registry.join("proj1", "s1")

        assert "s1" in registry.members_of("proj1")
        assert "proj1" in registry.rooms_of("s1")
        assert registry.room_count("proj1") == 1

    def test_join_is_idempotent(self, registry):
        """Joining twice keeps a single membership."""
        assert registry.join("proj1", "s1") is True
        assert registry.join("proj1", "s1") is False

        assert registry.room_count("proj1") == 1
        assert registry.rooms_of("s1") == frozenset({"proj1"})

    def test_join_multiple_rooms(self, registry):
        """A session can belong to several rooms at once."""
        registry.join("proj1", "s1")
        registry.join("proj2", "s1")
        registry.join("proj3", "s1")

        assert registry.rooms_of("s1") == frozenset({"proj1", "proj2", "proj3"})
        assert registry.total_rooms == 3

    def test_members_of_is_snapshot(self, registry):
        """Mutating the registry does not change a returned member set."""
        registry.join("proj1", "s1")
        members = registry.members_of("proj1")

        registry.join("proj1", "s2")

        assert members == frozenset({"s1"})
        assert registry.members_of("proj1") == frozenset({"s1", "s2"})


class TestRoomRegistryLeave:
    """Tests for leaving rooms."""

    def test_leave_room(self, registry):
        """After join then leave, the session is no longer a member."""
        registry.join("proj1", "s1")
        registry.join("proj1", "s2")

        assert registry.leave("proj1", "s1") is True

        assert "s1" not in registry.members_of("proj1")
        assert "proj1" not in registry.rooms_of("s1")
        assert registry.members_of("proj1") == frozenset({"s2"})

    def test_leave_prunes_empty_room(self, registry):
        """The last member leaving removes the room entry."""
        registry.join("proj1", "s1")
        registry.leave("proj1", "s1")

        assert registry.total_rooms == 0
        assert registry.room_count("proj1") == 0

    def test_leave_is_idempotent(self, registry):
        """Leaving twice is harmless."""
        registry.join("proj1", "s1")

        assert registry.leave("proj1", "s1") is True
        assert registry.leave("proj1", "s1") is False

    def test_leave_nonexistent_room(self, registry):
        """Leaving an unknown room is a no-op."""
        assert registry.leave("nonexistent", "s1") is False
        assert registry.total_rooms == 0


class TestRoomRegistryRemoveSession:
    """Tests for disconnect cleanup."""

    def test_remove_session_from_all_rooms(self, registry):
        """Removing a session clears every membership it had."""
        registry.join("proj1", "s1")
        registry.join("proj2", "s1")
        registry.join("proj2", "s2")

        rooms = registry.remove_session("s1")

        assert rooms == ["proj1", "proj2"]
        assert registry.rooms_of("s1") == frozenset()
        assert registry.members_of("proj2") == frozenset({"s2"})
        assert registry.total_rooms == 1

    def test_remove_unknown_session(self, registry):
        """Removing a session with no rooms returns nothing."""
        assert registry.remove_session("ghost") == []
