"""Fire-and-forget fan-out of relay messages."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

from relay.messaging.encoder import encode

if TYPE_CHECKING:
    from collections.abc import Iterable

    from relay.messaging.protocol import ConnectionProtocol
    from relay.session.models import Player


async def send_to_connection(connection: ConnectionProtocol, message: dict[str, Any]) -> None:
    """Send one message, silently skipping closed or failing connections."""
    if not connection.is_open:
        return
    with contextlib.suppress(RuntimeError, OSError):
        await connection.send_message(message)


async def broadcast_to_players(
    players: Iterable[Player],
    message: dict[str, Any],
    exclude_connection_id: str | None = None,
) -> None:
    """Send a message to every open player connection, skipping one if excluded.

    The message is serialised once. Players are snapshotted first so a
    membership change while a send is pending cannot break iteration.
    There is no queueing or retry: a closed connection just misses the message.
    """
    payload = encode(message)
    for player in list(players):
        if player.connection_id == exclude_connection_id or not player.connection.is_open:
            continue
        with contextlib.suppress(RuntimeError, OSError):
            await player.connection.send_text(payload)
