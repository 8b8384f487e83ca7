"""Room registry: the table of live rooms keyed by code."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from relay.session.codes import generate_room_code, normalize_room_code
from relay.session.models import Room

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from relay.session.models import Player

logger = structlog.get_logger()

MAX_CODE_ATTEMPTS = 32


class RoomCodeTakenError(ValueError):
    """Raised when a room code is already registered, or no free code could be drawn."""


class RoomRegistry:
    """Own every live Room, keyed by its uppercase code.

    One instance is created per server and injected into the SessionManager,
    so tests get a fresh table each time.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and normalize_room_code(code) in self._rooms

    def rooms(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def allocate_code(self, generate: Callable[[], str] = generate_room_code) -> str:
        """Draw codes until one is not in use."""
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate()
            if code not in self._rooms:
                return code
            logger.debug("room code collision, redrawing", room_code=code)
        raise RoomCodeTakenError(f"no free room code after {MAX_CODE_ATTEMPTS} attempts")

    def create(self, code: str, initial_player: Player) -> Room:
        """Register a lobby room whose sole member and host is initial_player."""
        code = normalize_room_code(code)
        if code in self._rooms:
            raise RoomCodeTakenError(f"room code {code} is already in use")
        room = Room(code=code, host_connection_id=initial_player.connection_id, players=[initial_player])
        self._rooms[code] = room
        return room

    def lookup(self, code: str) -> Room | None:
        return self._rooms.get(normalize_room_code(code))

    def delete(self, code: str) -> None:
        self._rooms.pop(normalize_room_code(code), None)
