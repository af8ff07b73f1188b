"""Shared pytest fixtures for realtime tests."""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from moodboard_realtime.main import app
from moodboard_realtime.schemas.events import OutboundEvent
from moodboard_realtime.websocket import (
    DeliveryError,
    EventBroadcaster,
    PresenceTracker,
    RoomRegistry,
    SessionGateway,
    Transport,
    create_hub,
)


class FakeClock:
    """Controllable clock returning a fixed, advanceable UTC time."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class RecordingTransport(Transport):
    """Transport that records delivered events per session."""

    def __init__(self) -> None:
        self.delivered: dict[str, list[OutboundEvent]] = defaultdict(list)
        self.failing: set[str] = set()

    def deliver(self, session_id: str, event: OutboundEvent) -> None:
        if session_id in self.failing:
            raise DeliveryError(f"session {session_id} is gone")
        self.delivered[session_id].append(event)

    def kinds(self, session_id: str) -> list[str]:
        return [event.kind.value for event in self.delivered.get(session_id, [])]

    def clear(self) -> None:
        self.delivered.clear()


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at a known instant."""
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def registry() -> RoomRegistry:
    """Fresh room registry."""
    return RoomRegistry()


@pytest.fixture
def tracker(clock: FakeClock) -> PresenceTracker:
    """Fresh presence tracker on the fake clock."""
    return PresenceTracker(clock=clock)


@pytest.fixture
def transport() -> RecordingTransport:
    """Transport recording every delivery."""
    return RecordingTransport()


@pytest.fixture
def broadcaster(registry: RoomRegistry, transport: RecordingTransport) -> EventBroadcaster:
    """Broadcaster over the recording transport."""
    return EventBroadcaster(registry, transport)


@pytest.fixture
def gateway(
    registry: RoomRegistry,
    tracker: PresenceTracker,
    broadcaster: EventBroadcaster,
    clock: FakeClock,
) -> SessionGateway:
    """Gateway wired to the fake transport and clock."""
    return SessionGateway(registry, tracker, broadcaster, clock=clock)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Test client running the app with an isolated realtime hub."""
    original_hub = app.state.hub
    app.state.hub = create_hub()

    with TestClient(app) as test_client:
        yield test_client

    app.state.hub = original_hub
