"""Tests for the broadcast relay helpers."""

import json
from unittest.mock import AsyncMock, MagicMock, PropertyMock

from relay.session.broadcast import broadcast_to_players, send_to_connection
from relay.session.models import Player
from relay.tests.mocks import MockConnection


def _players(*conns: MockConnection) -> list[Player]:
    return [Player(connection=c, name=f"P{i}") for i, c in enumerate(conns)]


class TestBroadcastToPlayers:
    async def test_full_broadcast_reaches_everyone(self):
        conns = [MockConnection() for _ in range(3)]
        await broadcast_to_players(_players(*conns), {"type": "test"})
        for conn in conns:
            assert conn.sent_messages == [{"type": "test"}]

    async def test_exclusive_broadcast_skips_sender(self):
        sender, other = MockConnection(), MockConnection()
        await broadcast_to_players(_players(sender, other), {"type": "test"}, exclude_connection_id=sender.connection_id)
        assert sender.sent_messages == []
        assert other.sent_messages == [{"type": "test"}]

    async def test_closed_connections_are_skipped(self):
        closed, live = MockConnection(), MockConnection()
        await closed.close()
        await broadcast_to_players(_players(closed, live), {"type": "test"})
        assert closed.sent_messages == []
        assert live.sent_messages == [{"type": "test"}]

    async def test_send_failure_does_not_stop_fan_out(self):
        broken = MagicMock()
        broken.connection_id = "broken"
        type(broken).is_open = PropertyMock(return_value=True)
        broken.send_text = AsyncMock(side_effect=ConnectionError("broken pipe"))
        live = MockConnection()

        players = [Player(connection=broken, name="X"), Player(connection=live, name="Y")]
        await broadcast_to_players(players, {"type": "test"})

        broken.send_text.assert_awaited_once_with(json.dumps({"type": "test"}, separators=(",", ":")))
        assert live.sent_messages == [{"type": "test"}]


class TestSendToConnection:
    async def test_sends_to_open_connection(self):
        conn = MockConnection()
        await send_to_connection(conn, {"type": "error", "message": "room full"})
        assert conn.sent_messages == [{"type": "error", "message": "room full"}]

    async def test_skips_closed_connection(self):
        conn = MockConnection()
        await conn.close()
        await send_to_connection(conn, {"type": "error"})
        assert conn.sent_messages == []

    async def test_goes_through_send_message(self):
        conn = MagicMock()
        type(conn).is_open = PropertyMock(return_value=True)
        conn.send_message = AsyncMock()
        await send_to_connection(conn, {"type": "error", "code": "room_full"})
        conn.send_message.assert_awaited_once_with({"type": "error", "code": "room_full"})

    async def test_suppresses_runtime_error(self):
        conn = MagicMock()
        type(conn).is_open = PropertyMock(return_value=True)
        conn.send_message = AsyncMock(side_effect=RuntimeError("closed"))
        await send_to_connection(conn, {"type": "error"})
        conn.send_message.assert_awaited_once()
