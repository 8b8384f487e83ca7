from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from relay.messaging.types import (
    CreateRoomMessage,
    JoinRoomMessage,
    LeaveMessage,
    MoveMessage,
    PlayerLostMessage,
    StartGameMessage,
    parse_client_message,
)

if TYPE_CHECKING:
    from relay.messaging.protocol import ConnectionProtocol
    from relay.session.manager import SessionManager

logger = logging.getLogger(__name__)


class MessageRouter:
    """
    Routes decoded client messages to the session manager.

    Holds no state of its own and can be driven with in-memory
    connections in tests.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except ValidationError as e:
            # Unknown types and malformed payloads get no reply.
            logger.debug("dropping invalid message from %s: %s", connection.connection_id, e)
            return

        if isinstance(message, CreateRoomMessage):
            await self._session_manager.create_room(connection, message.name)
        elif isinstance(message, JoinRoomMessage):
            await self._session_manager.join_room(connection, message.code, message.name)
        elif isinstance(message, StartGameMessage):
            await self._session_manager.start_game(connection)
        elif isinstance(message, MoveMessage):
            await self._session_manager.apply_move(
                connection,
                message.score,
                message.grid,
                message.lines,
                relay_lines="lines" in message.model_fields_set,
            )
        elif isinstance(message, PlayerLostMessage):
            await self._session_manager.report_loss(connection)
        elif isinstance(message, LeaveMessage):
            await self._session_manager.leave_room(connection)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.handle_disconnect(connection)
