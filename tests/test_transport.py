"""Tests for the WebSocket outbox transport."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from moodboard_realtime.schemas.events import EventKind, OutboundEvent
from moodboard_realtime.websocket.transport import DeliveryError, WebSocketTransport

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_event(step: int) -> OutboundEvent:
    return OutboundEvent.build(EventKind.IMAGE_MOVED, {"step": step}, NOW)


async def drain() -> None:
    """Let writer tasks run until their queues are empty."""
    for _ in range(10):
        await asyncio.sleep(0)


class TestWebSocketTransport:
    """Tests for per-session outboxes."""

    def test_deliver_to_unknown_session(self):
        """Delivering to a session without an outbox fails."""
        transport = WebSocketTransport()

        with pytest.raises(DeliveryError):
            transport.deliver("ghost", make_event(0))

    @pytest.mark.asyncio
    async def test_deliver_sends_in_order(self):
        """Queued events reach the socket in delivery order."""
        transport = WebSocketTransport()
        mock_ws = AsyncMock()
        transport.open("s1", mock_ws)

        for step in range(3):
            transport.deliver("s1", make_event(step))
        await drain()

        sent = [call.args[0] for call in mock_ws.send_json.call_args_list]
        assert [message["payload"]["step"] for message in sent] == [0, 1, 2]
        assert sent[0]["kind"] == "imageMoved"
        assert transport.open_sessions == 1

        await transport.close("s1")

    @pytest.mark.asyncio
    async def test_full_outbox_rejects(self):
        """A session that cannot keep up rejects further events."""
        transport = WebSocketTransport(max_pending=2)
        mock_ws = AsyncMock()
        transport.open("s1", mock_ws)

        # Writer has not run yet, so the queue fills synchronously
        transport.deliver("s1", make_event(0))
        transport.deliver("s1", make_event(1))
        with pytest.raises(DeliveryError, match="outbox full"):
            transport.deliver("s1", make_event(2))

        await transport.close("s1")

    @pytest.mark.asyncio
    async def test_close_stops_delivery(self):
        """Closed sessions no longer accept events."""
        transport = WebSocketTransport()
        outbox = transport.open("s1", AsyncMock())

        await transport.close("s1")

        assert outbox.writer.done()
        assert transport.open_sessions == 0
        with pytest.raises(DeliveryError):
            transport.deliver("s1", make_event(0))

    @pytest.mark.asyncio
    async def test_close_unknown_session(self):
        """Closing twice is harmless."""
        transport = WebSocketTransport()

        await transport.close("ghost")

    @pytest.mark.asyncio
    async def test_send_failure_closes_outbox(self):
        """A socket error stops the writer and fails later deliveries."""
        transport = WebSocketTransport()
        mock_ws = AsyncMock()
        mock_ws.send_json.side_effect = Exception("Connection closed")
        outbox = transport.open("s1", mock_ws)

        transport.deliver("s1", make_event(0))
        await drain()

        assert outbox.closed is True
        with pytest.raises(DeliveryError):
            transport.deliver("s1", make_event(1))

        await transport.close("s1")
