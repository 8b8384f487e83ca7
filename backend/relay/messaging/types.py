from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, JsonValue, StrictInt, TypeAdapter, field_validator

# ASCII control character boundaries for display name validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

# Relayed counters are taken as sent: no coercion from strings, floats or bools.
RelayedCount = Annotated[StrictInt, Field(ge=0)]


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    START_GAME = "start_game"
    MOVE = "move"
    PLAYER_LOST = "player_lost"
    LEAVE = "leave"


class ServerMessageType(StrEnum):
    ROOM_CREATED = "room_created"
    ROOM_JOINED = "room_joined"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    GAME_START = "game_start"
    OPPONENT_UPDATE = "opponent_update"
    OPPONENT_LOST = "opponent_lost"
    GAME_OVER = "game_over"
    ERROR = "error"


class RelayErrorCode(StrEnum):
    ROOM_NOT_FOUND = "room_not_found"
    MATCH_IN_PROGRESS = "match_in_progress"
    ROOM_FULL = "room_full"
    ALREADY_IN_ROOM = "already_in_room"
    SERVER_AT_CAPACITY = "server_at_capacity"
    CODE_UNAVAILABLE = "code_unavailable"


def _reject_control_characters(v: str | None) -> str | None:
    if v is not None and any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in v):
        raise ValueError("name must not contain control characters")
    return v


# --- Client -> server ---


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    name: str | None = None

    validate_name = field_validator("name")(_reject_control_characters)


class JoinRoomMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    # A missing code is looked up like any other and reported as "room not found".
    code: str = ""
    name: str | None = None

    validate_name = field_validator("name")(_reject_control_characters)


class StartGameMessage(BaseModel):
    type: Literal[ClientMessageType.START_GAME] = ClientMessageType.START_GAME


class MoveMessage(BaseModel):
    type: Literal[ClientMessageType.MOVE] = ClientMessageType.MOVE
    score: RelayedCount = 0
    grid: JsonValue = None
    lines: RelayedCount | None = None


class PlayerLostMessage(BaseModel):
    type: Literal[ClientMessageType.PLAYER_LOST] = ClientMessageType.PLAYER_LOST


class LeaveMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE] = ClientMessageType.LEAVE


ClientMessage = (
    CreateRoomMessage | JoinRoomMessage | StartGameMessage | MoveMessage | PlayerLostMessage | LeaveMessage
)

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(
    Annotated[ClientMessage, Field(discriminator="type")],
)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a decoded frame into a typed ClientMessage.

    Raises pydantic.ValidationError for unknown types and malformed payloads.
    """
    return _client_message_adapter.validate_python(data)


# --- Server -> client ---


class PlayerInfo(BaseModel):
    """Player entry in room membership lists."""

    name: str


class ScoreEntry(BaseModel):
    """Final score line in a game_over message."""

    name: str
    score: int


class RoomCreatedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_CREATED] = ServerMessageType.ROOM_CREATED
    code: str
    players: list[PlayerInfo]


class RoomJoinedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_JOINED] = ServerMessageType.ROOM_JOINED
    code: str
    players: list[PlayerInfo]


class PlayerJoinedMessage(BaseModel):
    type: Literal[ServerMessageType.PLAYER_JOINED] = ServerMessageType.PLAYER_JOINED
    name: str
    players: list[PlayerInfo]


class PlayerLeftMessage(BaseModel):
    type: Literal[ServerMessageType.PLAYER_LEFT] = ServerMessageType.PLAYER_LEFT
    name: str
    players: list[PlayerInfo]


class GameStartMessage(BaseModel):
    type: Literal[ServerMessageType.GAME_START] = ServerMessageType.GAME_START
    seed: int


class OpponentUpdateMessage(BaseModel):
    """Relayed board state of one opponent. `lines` is omitted unless it was set, even to None."""

    type: Literal[ServerMessageType.OPPONENT_UPDATE] = ServerMessageType.OPPONENT_UPDATE
    name: str
    grid: JsonValue = None
    score: int
    lines: int | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude=None if "lines" in self.model_fields_set else {"lines"})


class OpponentLostMessage(BaseModel):
    type: Literal[ServerMessageType.OPPONENT_LOST] = ServerMessageType.OPPONENT_LOST
    name: str


class GameOverMessage(BaseModel):
    type: Literal[ServerMessageType.GAME_OVER] = ServerMessageType.GAME_OVER
    winner: str
    scores: list[ScoreEntry]


class ErrorMessage(BaseModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: RelayErrorCode
    message: str
