from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from relay.messaging.types import PlayerInfo, ScoreEntry

if TYPE_CHECKING:
    from pydantic import JsonValue

    from relay.messaging.protocol import ConnectionProtocol

MAX_ROOM_PLAYERS = 4
DEFAULT_PLAYER_NAME = "Player"
MAX_PLAYER_NAME_LENGTH = 24


def resolve_player_name(raw: str | None) -> str:
    """Strip and truncate a client-supplied name, falling back when blank."""
    name = (raw or "").strip()[:MAX_PLAYER_NAME_LENGTH]
    return name or DEFAULT_PLAYER_NAME


class SessionState(StrEnum):
    """Where a connection sits in the room lifecycle."""

    UNJOINED = "unjoined"
    IN_LOBBY = "in_lobby"
    IN_MATCH = "in_match"


@dataclass
class Player:
    """Represent one member of a room.

    Mutated only by messages from its own connection (move, player_lost)
    and by the room-wide reset at match start.
    """

    connection: ConnectionProtocol
    name: str
    score: int = 0
    lost: bool = False
    grid: JsonValue = None

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id


@dataclass
class Room:
    """A group of up to four players sharing one match.

    Players are kept in join order: the first remaining player inherits
    host on departure, and earlier players win score ties.

    lock serialises events within this room, including their sends, so
    every member sees the room's messages in the order they were decided.
    """

    code: str
    host_connection_id: str
    players: list[Player] = field(default_factory=list)
    started: bool = False
    match_size: int = 0  # member count when the current/last match started
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_empty(self) -> bool:
        return not self.players

    @property
    def is_full(self) -> bool:
        return self.player_count >= MAX_ROOM_PLAYERS

    @property
    def alive_players(self) -> list[Player]:
        return [p for p in self.players if not p.lost]

    def get_player(self, connection_id: str) -> Player | None:
        return next((p for p in self.players if p.connection_id == connection_id), None)

    def is_host(self, connection_id: str) -> bool:
        return self.host_connection_id == connection_id

    def add_player(self, player: Player) -> None:
        self.players.append(player)

    def remove_player(self, connection_id: str) -> Player | None:
        """Remove a player, handing host to the earliest remaining member if needed."""
        player = self.get_player(connection_id)
        if player is None:
            return None
        self.players.remove(player)
        if self.is_host(connection_id) and self.players:
            self.host_connection_id = self.players[0].connection_id
        return player

    def start_match(self) -> None:
        self.started = True
        self.match_size = self.player_count
        for player in self.players:
            player.score = 0
            player.lost = False

    def get_player_info(self) -> list[PlayerInfo]:
        return [PlayerInfo(name=p.name) for p in self.players]

    def get_scores(self) -> list[ScoreEntry]:
        return [ScoreEntry(name=p.name, score=p.score) for p in self.players]


@dataclass
class ConnectionSession:
    """Per-connection context bridging a transport connection to a room.

    room_code is a registry key rather than a Room reference, so a session
    that outlives its room simply resolves to no room.
    """

    connection: ConnectionProtocol
    room_code: str | None = None
    player_name: str = ""

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id
