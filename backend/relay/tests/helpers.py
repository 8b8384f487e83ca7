from __future__ import annotations

from typing import TYPE_CHECKING

from relay.messaging.types import ServerMessageType
from relay.tests.mocks import MockConnection

TEST_SEED = 424242

if TYPE_CHECKING:
    from relay.session.manager import SessionManager


async def create_room_with_players(
    manager: SessionManager,
    player_names: list[str] | None = None,
) -> tuple[str, list[MockConnection]]:
    """Create a room hosted by the first name and join the rest in order.

    Returns (room_code, connections) with every outbox cleared.
    """
    if player_names is None:
        player_names = ["Alice", "Bob"]

    host = MockConnection()
    manager.register_connection(host)
    await manager.create_room(host, player_names[0])
    created = host.messages_of_type(ServerMessageType.ROOM_CREATED)
    assert len(created) == 1, f"Expected 1 room_created message, got {len(created)}"
    code = created[0]["code"]

    connections = [host]
    for name in player_names[1:]:
        conn = MockConnection()
        manager.register_connection(conn)
        await manager.join_room(conn, code, name)
        connections.append(conn)

    for conn in connections:
        conn._outbox.clear()
    return code, connections


async def create_started_match(
    manager: SessionManager,
    player_names: list[str] | None = None,
) -> tuple[str, list[MockConnection]]:
    """Create a room, start the match as host, and clear every outbox."""
    code, connections = await create_room_with_players(manager, player_names)
    await manager.start_game(connections[0])
    for conn in connections:
        conn._outbox.clear()
    return code, connections
