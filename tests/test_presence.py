"""Unit tests for the presence tracker."""

from datetime import datetime, timezone

from moodboard_realtime.websocket.presence import PresenceTracker, UserPresence


class TestPresenceTracker:
    """Tests for presence upserts and queries."""

    def test_set_presence(self, tracker, clock):
        """A presence report is stored with the clock's time."""
        entry = tracker.set_presence("proj1", "u1", "Alice", True)

        assert entry == UserPresence(
            user_id="u1",
            username="Alice",
            is_online=True,
            last_seen=clock.now,
        )
        assert tracker.get("proj1", "u1") == entry

    def test_presence_overwrite(self, tracker):
        """The latest report replaces the previous one entirely."""
        tracker.set_presence("proj1", "u1", "name1", True)
        tracker.set_presence("proj1", "u1", "name2", False)

        entries = tracker.presence_of("proj1")

        assert len(entries) == 1
        assert entries[0].username == "name2"
        assert entries[0].is_online is False

    def test_last_seen_follows_clock(self, tracker, clock):
        """Each report is stamped with the current clock time."""
        tracker.set_presence("proj1", "u1", "Alice", True)
        clock.advance(30)
        tracker.set_presence("proj1", "u1", "Alice", True)

        assert tracker.get("proj1", "u1").last_seen == datetime(
            2024, 5, 1, 12, 0, 30, tzinfo=timezone.utc
        )

    def test_presence_is_per_room(self, tracker):
        """Reports in one room do not leak into another."""
        tracker.set_presence("proj1", "u1", "Alice", True)
        tracker.set_presence("proj2", "u1", "Alice", False)

        assert tracker.get("proj1", "u1").is_online is True
        assert tracker.get("proj2", "u1").is_online is False

    def test_presence_of_unknown_room(self, tracker):
        """An unknown room has no presence entries."""
        assert tracker.presence_of("nonexistent") == []
        assert tracker.get("nonexistent", "u1") is None

    def test_presence_of_online_only(self, tracker):
        """Offline users can be filtered out."""
        tracker.set_presence("proj1", "u2", "Bob", False)
        tracker.set_presence("proj1", "u1", "Alice", True)

        assert [e.user_id for e in tracker.presence_of("proj1")] == ["u1", "u2"]
        assert [e.user_id for e in tracker.presence_of("proj1", online_only=True)] == ["u1"]

    def test_default_clock_is_utc(self):
        """Without an injected clock, timestamps are aware UTC datetimes."""
        tracker = PresenceTracker()

        entry = tracker.set_presence("proj1", "u1", "Alice", True)

        assert entry.last_seen.tzinfo is not None
        assert entry.last_seen.utcoffset().total_seconds() == 0


class TestPresenceChangeHook:
    """Tests for the change hook used to sync other workers."""

    def test_local_updates_notify_hook(self, tracker):
        """Every set_presence call reaches the hook with its entry."""
        seen = []
        tracker.on_change = lambda room_id, entry, implicit: seen.append(
            (room_id, entry.user_id, entry.is_online, implicit)
        )

        tracker.set_presence("proj1", "u1", "Alice", True)
        tracker.set_presence("proj1", "u1", "Alice", False, implicit=True)

        assert seen == [("proj1", "u1", True, False), ("proj1", "u1", False, True)]

    def test_apply_stores_without_notifying(self, tracker):
        """Entries from elsewhere keep their timestamp and skip the hook."""
        seen = []
        tracker.on_change = lambda *args: seen.append(args)
        remote = UserPresence(
            user_id="u1",
            username="Alice",
            is_online=True,
            last_seen=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        tracker.apply("proj1", remote)

        assert tracker.get("proj1", "u1") is remote
        assert seen == []
