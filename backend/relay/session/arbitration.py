"""Decide when a match is over and who won."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from relay.messaging.types import ScoreEntry
    from relay.session.models import Room


@dataclass(frozen=True)
class GameOutcome:
    winner: str
    scores: list[ScoreEntry]


def decide_game_over(room: Room) -> GameOutcome | None:
    """Return the outcome if the match in `room` has ended, else None.

    Players who left are already gone from room.players, so they never
    count as alive even though their lost flag was never set.

    - One player alive in a match that began with more than one: they win.
    - Nobody alive: the highest score wins; the earliest joiner takes ties.
    - Two or more alive: the match continues.
    """
    alive = room.alive_players
    if len(alive) == 1 and room.match_size > 1:
        return GameOutcome(winner=alive[0].name, scores=room.get_scores())
    if not alive and room.players:
        best = room.players[0]
        for player in room.players[1:]:
            if player.score > best.score:
                best = player
        return GameOutcome(winner=best.name, scores=room.get_scores())
    return None
