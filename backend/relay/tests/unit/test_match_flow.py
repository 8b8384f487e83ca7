"""Tests for move relaying, eliminations and game-over through the SessionManager."""

from relay.messaging.types import ServerMessageType
from relay.session.models import SessionState
from relay.tests.helpers import create_room_with_players, create_started_match

GRID = [[0, 1, 0], [1, 1, 0], [0, 0, 0]]


class TestStartResetsPlayers:
    async def test_rematch_resets_scores_and_lost_flags(self, manager):
        code, conns = await create_started_match(manager, ["Alice", "Bob"])
        await manager.apply_move(conns[0], 50, GRID)
        await manager.report_loss(conns[1])
        room = manager.get_room(code)
        assert room.started is False

        await manager.start_game(conns[0])

        assert room.started is True
        assert all(p.score == 0 and p.lost is False for p in room.players)


class TestMove:
    async def test_move_relays_to_opponents_only(self, manager):
        _, (alice, bob, carol) = await create_started_match(manager, ["Alice", "Bob", "Carol"])

        await manager.apply_move(alice, 120, GRID, 2)

        expected = {"type": "opponent_update", "name": "Alice", "grid": GRID, "score": 120, "lines": 2}
        assert bob.sent_messages == [expected]
        assert carol.sent_messages == [expected]
        assert alice.sent_messages == []

    async def test_lines_omitted_when_absent(self, manager):
        _, (alice, bob) = await create_started_match(manager, ["Alice", "Bob"])

        await manager.apply_move(alice, 10, GRID)

        [update] = bob.sent_messages
        assert "lines" not in update
        assert update["score"] == 10

    async def test_move_records_score_and_grid(self, manager):
        code, (alice, _) = await create_started_match(manager, ["Alice", "Bob"])

        await manager.apply_move(alice, 75, GRID)

        player = manager.get_room(code).players[0]
        assert player.score == 75
        assert player.grid == GRID

    async def test_grid_is_relayed_verbatim(self, manager):
        _, (alice, bob) = await create_started_match(manager, ["Alice", "Bob"])
        odd_grid = {"cells": "anything", "nested": [None, True, 1.5]}

        await manager.apply_move(alice, 0, odd_grid)

        assert bob.sent_messages[0]["grid"] == odd_grid

    async def test_move_in_lobby_is_ignored(self, manager):
        code, (alice, bob) = await create_room_with_players(manager, ["Alice", "Bob"])

        await manager.apply_move(alice, 99, GRID)

        assert bob.sent_messages == []
        assert manager.get_room(code).players[0].score == 0

    async def test_move_outside_room_is_ignored(self, manager, mock_connection):
        await manager.apply_move(mock_connection, 10, GRID)
        assert mock_connection.sent_messages == []

    async def test_move_after_losing_is_still_relayed(self, manager):
        _, (alice, bob, carol) = await create_started_match(manager, ["Alice", "Bob", "Carol"])
        await manager.report_loss(alice)
        bob._outbox.clear()

        await manager.apply_move(alice, 5, GRID)

        assert bob.messages_of_type(ServerMessageType.OPPONENT_UPDATE)


class TestPlayerLost:
    async def test_loss_notifies_opponents(self, manager):
        _, (alice, bob, carol) = await create_started_match(manager, ["Alice", "Bob", "Carol"])

        await manager.report_loss(alice)

        assert bob.sent_messages == [{"type": "opponent_lost", "name": "Alice"}]
        assert carol.sent_messages == [{"type": "opponent_lost", "name": "Alice"}]
        assert alice.sent_messages == []

    async def test_last_player_standing_wins(self, manager):
        code, (alice, bob, carol) = await create_started_match(manager, ["Alice", "Bob", "Carol"])
        await manager.apply_move(alice, 10, GRID)
        await manager.apply_move(bob, 20, GRID)
        await manager.apply_move(carol, 30, GRID)

        await manager.report_loss(alice)
        await manager.report_loss(carol)

        expected = {
            "type": "game_over",
            "winner": "Bob",
            "scores": [
                {"name": "Alice", "score": 10},
                {"name": "Bob", "score": 20},
                {"name": "Carol", "score": 30},
            ],
        }
        for conn in (alice, bob, carol):
            assert conn.messages_of_type(ServerMessageType.GAME_OVER) == [expected]
        assert manager.get_room(code).started is False
        assert manager.state_of(bob.connection_id) == SessionState.IN_LOBBY

    async def test_opponent_lost_precedes_game_over(self, manager):
        _, (alice, bob) = await create_started_match(manager, ["Alice", "Bob"])

        await manager.report_loss(alice)

        assert [m["type"] for m in bob.sent_messages] == ["opponent_lost", "game_over"]
        assert [m["type"] for m in alice.sent_messages] == ["game_over"]

    async def test_all_lost_highest_score_wins(self, manager):
        code, (alice,) = await create_started_match(manager, ["Alice"])
        await manager.apply_move(alice, 40, GRID)

        await manager.report_loss(alice)

        [over] = alice.messages_of_type(ServerMessageType.GAME_OVER)
        assert over["winner"] == "Alice"
        assert over["scores"] == [{"name": "Alice", "score": 40}]
        assert manager.get_room(code).started is False

    async def test_duplicate_loss_is_ignored(self, manager):
        _, (alice, bob, carol) = await create_started_match(manager, ["Alice", "Bob", "Carol"])

        await manager.report_loss(alice)
        await manager.report_loss(alice)

        assert bob.messages_of_type(ServerMessageType.OPPONENT_LOST) == [{"type": "opponent_lost", "name": "Alice"}]
        assert bob.messages_of_type(ServerMessageType.GAME_OVER) == []

    async def test_loss_in_lobby_is_ignored(self, manager):
        code, (alice, bob) = await create_room_with_players(manager, ["Alice", "Bob"])

        await manager.report_loss(alice)

        assert bob.sent_messages == []
        assert manager.get_room(code).players[0].lost is False

    async def test_game_over_emitted_once(self, manager):
        _, (alice, bob) = await create_started_match(manager, ["Alice", "Bob"])

        await manager.report_loss(alice)
        await manager.report_loss(bob)

        assert len(bob.messages_of_type(ServerMessageType.GAME_OVER)) == 1
        assert len(alice.messages_of_type(ServerMessageType.GAME_OVER)) == 1
