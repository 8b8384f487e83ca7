from __future__ import annotations

import contextlib
import secrets
from typing import TYPE_CHECKING, ClassVar

import structlog

from relay.messaging.types import (
    ClientMessageType,
    ErrorMessage,
    GameOverMessage,
    GameStartMessage,
    OpponentLostMessage,
    OpponentUpdateMessage,
    PlayerJoinedMessage,
    PlayerLeftMessage,
    RelayErrorCode,
    RoomCreatedMessage,
    RoomJoinedMessage,
)
from relay.session.arbitration import decide_game_over
from relay.session.broadcast import broadcast_to_players, send_to_connection
from relay.session.codes import normalize_room_code
from relay.session.models import ConnectionSession, Player, SessionState, resolve_player_name
from relay.session.registry import RoomCodeTakenError, RoomRegistry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from pydantic import JsonValue

    from relay.messaging.protocol import ConnectionProtocol
    from relay.session.models import Room

logger = structlog.get_logger()

DEFAULT_MAX_ROOMS = 1000
# Seeds are in [0, MAX_SEED); clients derive their shared piece sequence from it.
MAX_SEED = 999_999

_ERROR_TEXT = {
    RelayErrorCode.ROOM_NOT_FOUND: "room not found",
    RelayErrorCode.MATCH_IN_PROGRESS: "match already in progress",
    RelayErrorCode.ROOM_FULL: "room full",
    RelayErrorCode.ALREADY_IN_ROOM: "already in a room",
    RelayErrorCode.SERVER_AT_CAPACITY: "server at capacity",
    RelayErrorCode.CODE_UNAVAILABLE: "could not allocate a room code",
}


def draw_seed() -> int:
    return secrets.randbelow(MAX_SEED)


class SessionManager:
    """Room lifecycle controller: the relay's protocol state machine.

    Each connection is in one of three states (see SessionState), derived
    from its session's room key and that room's started flag. Every public
    operation checks the sender's state against _ALLOWED_STATES before
    touching anything.

    Events are serialised per room: each one holds its room's lock from
    validation through the resulting sends, so members of a room see its
    messages in decision order. Rooms never wait on each other, and a peer
    that stops reading only stalls its own room. State changes between
    awaits are atomic on the event loop, which covers the registry and
    session table without a global lock.
    """

    _ALLOWED_STATES: ClassVar[dict[ClientMessageType, frozenset[SessionState]]] = {
        ClientMessageType.CREATE_ROOM: frozenset({SessionState.UNJOINED}),
        ClientMessageType.JOIN_ROOM: frozenset({SessionState.UNJOINED}),
        ClientMessageType.START_GAME: frozenset({SessionState.IN_LOBBY}),
        ClientMessageType.MOVE: frozenset({SessionState.IN_MATCH}),
        ClientMessageType.PLAYER_LOST: frozenset({SessionState.IN_MATCH}),
        ClientMessageType.LEAVE: frozenset({SessionState.IN_LOBBY, SessionState.IN_MATCH}),
    }

    def __init__(
        self,
        registry: RoomRegistry | None = None,
        *,
        max_rooms: int = DEFAULT_MAX_ROOMS,
        seed_source: Callable[[], int] = draw_seed,
    ) -> None:
        self._registry = registry if registry is not None else RoomRegistry()
        self._max_rooms = max_rooms
        self._seed_source = seed_source
        self._sessions: dict[str, ConnectionSession] = {}  # connection_id -> ConnectionSession

    # --- Connections and lookups ---

    def register_connection(self, connection: ConnectionProtocol) -> ConnectionSession:
        return self._session_for(connection)

    def _session_for(self, connection: ConnectionProtocol) -> ConnectionSession:
        session = self._sessions.get(connection.connection_id)
        if session is None:
            session = ConnectionSession(connection=connection)
            self._sessions[connection.connection_id] = session
        return session

    def get_session(self, connection_id: str) -> ConnectionSession | None:
        return self._sessions.get(connection_id)

    def get_room(self, code: str) -> Room | None:
        return self._registry.lookup(code)

    @property
    def room_count(self) -> int:
        return len(self._registry)

    @property
    def match_count(self) -> int:
        return sum(1 for room in self._registry.rooms() if room.started)

    @property
    def connection_count(self) -> int:
        return len(self._sessions)

    def _room_of(self, session: ConnectionSession) -> Room | None:
        if session.room_code is None:
            return None
        room = self._registry.lookup(session.room_code)
        if room is None or room.get_player(session.connection_id) is None:
            return None
        return room

    def state_of(self, connection_id: str) -> SessionState:
        session = self._sessions.get(connection_id)
        room = self._room_of(session) if session is not None else None
        if room is None:
            return SessionState.UNJOINED
        return SessionState.IN_MATCH if room.started else SessionState.IN_LOBBY

    def _allowed(self, session: ConnectionSession, message_type: ClientMessageType) -> bool:
        state = self.state_of(session.connection_id)
        if state in self._ALLOWED_STATES[message_type]:
            return True
        logger.debug(
            "message not allowed in state",
            connection_id=session.connection_id,
            message_type=message_type,
            state=state,
        )
        return False

    @contextlib.asynccontextmanager
    async def _room_event(
        self,
        session: ConnectionSession,
        message_type: ClientMessageType,
    ) -> AsyncIterator[Room | None]:
        """Hold the sender's room lock; yield the room if message_type is allowed now.

        Yields None when the sender has no room, or lost it (or the room
        moved on to another state) while waiting for the lock.
        """
        room = self._room_of(session)
        if room is None:
            self._allowed(session, message_type)
            yield None
            return
        async with room.lock:
            if self._room_of(session) is room and self._allowed(session, message_type):
                yield room
            else:
                yield None

    async def _send_error(self, connection: ConnectionProtocol, code: RelayErrorCode) -> None:
        await send_to_connection(connection, ErrorMessage(code=code, message=_ERROR_TEXT[code]).model_dump())

    # --- Lobby ---

    async def create_room(self, connection: ConnectionProtocol, name: str | None = None) -> None:
        session = self._session_for(connection)
        if not self._allowed(session, ClientMessageType.CREATE_ROOM):
            await self._send_error(connection, RelayErrorCode.ALREADY_IN_ROOM)
            return

        if len(self._registry) >= self._max_rooms:
            logger.warning("room creation refused, server at capacity", room_count=len(self._registry))
            await self._send_error(connection, RelayErrorCode.SERVER_AT_CAPACITY)
            return

        player_name = resolve_player_name(name)
        player = Player(connection=connection, name=player_name)
        try:
            room = self._registry.create(self._registry.allocate_code(), player)
        except RoomCodeTakenError:
            logger.exception("room code allocation failed")
            await self._send_error(connection, RelayErrorCode.CODE_UNAVAILABLE)
            return

        session.room_code = room.code
        session.player_name = player_name
        logger.info("room created", room_code=room.code, player_name=player_name)

        # Taken before any joiner can queue on it: room_created precedes player_joined.
        async with room.lock:
            await send_to_connection(
                connection,
                RoomCreatedMessage(code=room.code, players=room.get_player_info()).model_dump(),
            )

    async def join_room(self, connection: ConnectionProtocol, code: str, name: str | None = None) -> None:
        session = self._session_for(connection)
        if not self._allowed(session, ClientMessageType.JOIN_ROOM):
            await self._send_error(connection, RelayErrorCode.ALREADY_IN_ROOM)
            return

        room = self._registry.lookup(normalize_room_code(code))
        if room is None:
            await self._send_error(connection, RelayErrorCode.ROOM_NOT_FOUND)
            return

        async with room.lock:
            if self._registry.lookup(room.code) is not room:
                # emptied and deleted while we waited
                await self._send_error(connection, RelayErrorCode.ROOM_NOT_FOUND)
                return
            if room.started:
                await self._send_error(connection, RelayErrorCode.MATCH_IN_PROGRESS)
                return
            if room.is_full:
                await self._send_error(connection, RelayErrorCode.ROOM_FULL)
                return

            player_name = resolve_player_name(name)
            room.add_player(Player(connection=connection, name=player_name))
            session.room_code = room.code
            session.player_name = player_name
            logger.info("player joined", room_code=room.code, player_name=player_name, player_count=room.player_count)

            player_info = room.get_player_info()
            await send_to_connection(connection, RoomJoinedMessage(code=room.code, players=player_info).model_dump())
            await broadcast_to_players(
                room.players,
                PlayerJoinedMessage(name=player_name, players=player_info).model_dump(),
                exclude_connection_id=connection.connection_id,
            )

    async def start_game(self, connection: ConnectionProtocol) -> None:
        session = self._session_for(connection)
        async with self._room_event(session, ClientMessageType.START_GAME) as room:
            if room is None:
                return
            if not room.is_host(connection.connection_id):
                logger.debug("start_game ignored, sender is not host", connection_id=connection.connection_id)
                return

            room.start_match()
            seed = self._seed_source()
            logger.info("match started", room_code=room.code, player_count=room.player_count)
            await broadcast_to_players(room.players, GameStartMessage(seed=seed).model_dump())

    # --- Match ---

    async def apply_move(
        self,
        connection: ConnectionProtocol,
        score: int,
        grid: JsonValue,
        lines: int | None = None,
        *,
        relay_lines: bool | None = None,
    ) -> None:
        """Record the sender's board and relay it to the rest of the room.

        lines is relayed when relay_lines is true, which by default means
        whenever it is not None. Pass relay_lines=True to forward an
        explicit null.
        """
        if relay_lines is None:
            relay_lines = lines is not None
        session = self._session_for(connection)
        async with self._room_event(session, ClientMessageType.MOVE) as room:
            player = room.get_player(connection.connection_id) if room is not None else None
            if room is None or player is None:
                return

            player.score = score
            player.grid = grid
            fields = {"lines": lines} if relay_lines else {}
            update = OpponentUpdateMessage(name=player.name, grid=grid, score=score, **fields)
            await broadcast_to_players(
                room.players,
                update.to_wire(),
                exclude_connection_id=connection.connection_id,
            )

    async def report_loss(self, connection: ConnectionProtocol) -> None:
        session = self._session_for(connection)
        async with self._room_event(session, ClientMessageType.PLAYER_LOST) as room:
            player = room.get_player(connection.connection_id) if room is not None else None
            if room is None or player is None or player.lost:
                return

            player.lost = True
            logger.info("player lost", room_code=room.code, player_name=player.name, score=player.score)
            await broadcast_to_players(
                room.players,
                OpponentLostMessage(name=player.name).model_dump(),
                exclude_connection_id=connection.connection_id,
            )
            await self._finish_if_over(room)

    async def _finish_if_over(self, room: Room) -> None:
        outcome = decide_game_over(room)
        if outcome is None:
            return
        room.started = False
        logger.info("game over", room_code=room.code, winner=outcome.winner)
        await broadcast_to_players(
            room.players,
            GameOverMessage(winner=outcome.winner, scores=outcome.scores).model_dump(),
        )

    # --- Leaving ---

    async def leave_room(self, connection: ConnectionProtocol) -> None:
        """Handle an explicit leave message."""
        session = self._session_for(connection)
        async with self._room_event(session, ClientMessageType.LEAVE) as room:
            if room is None:
                session.room_code = None
                return
            await self._remove_from_room(session, room)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        """Run the leave procedure for a closed connection and forget its session."""
        session = self._sessions.pop(connection.connection_id, None)
        room = self._room_of(session) if session is not None else None
        if room is None:
            return
        async with room.lock:
            if self._room_of(session) is room:
                await self._remove_from_room(session, room)

    async def _remove_from_room(self, session: ConnectionSession, room: Room) -> None:
        session.room_code = None
        player = room.remove_player(session.connection_id)
        if player is None:  # pragma: no cover
            return
        logger.info("player left", room_code=room.code, player_name=player.name, player_count=room.player_count)

        if room.is_empty:
            self._registry.delete(room.code)
            logger.info("room deleted", room_code=room.code)
            return

        await broadcast_to_players(
            room.players,
            PlayerLeftMessage(name=player.name, players=room.get_player_info()).model_dump(),
        )
        if room.started:
            await self._finish_if_over(room)
