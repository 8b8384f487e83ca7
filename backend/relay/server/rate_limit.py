"""Per-connection inbound budgets for relay frames.

Moves stream at board-update rate while lobby and control messages are
rare, so each class spends from its own bucket. A client spamming
create_room or join_room is cut off long before a real board stream
would be, and a burst of moves never eats into the budget for leave or
player_lost.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from relay.messaging.types import ClientMessageType

if TYPE_CHECKING:
    from collections.abc import Callable

    from relay.server.settings import RelayServerSettings


class TokenBucket:
    """Refill at `rate` tokens per second up to `burst`; take() spends one."""

    def __init__(self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._rate = rate
        self._burst = float(burst)
        self._clock = clock
        self._tokens = float(burst)
        self._stamp = clock()

    def take(self) -> bool:
        now = self._clock()
        self._tokens = min(self._burst, self._tokens + (now - self._stamp) * self._rate)
        self._stamp = now
        if self._tokens < 1.0:
            return False
        self._tokens -= 1.0
        return True


class InboundRateLimiter:
    """Two-stage budget for one connection.

    admit_frame() is checked before a frame is decoded, against the move and
    control budgets combined, so garbage and oversized frames cost a token
    too. admit() then charges the decoded message to its class: `move` to
    the move bucket, everything else (unknown types included) to the
    control bucket.
    """

    def __init__(
        self,
        *,
        move_rate: float,
        move_burst: int,
        control_rate: float,
        control_burst: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._frames = TokenBucket(move_rate + control_rate, move_burst + control_burst, clock)
        self._moves = TokenBucket(move_rate, move_burst, clock)
        self._control = TokenBucket(control_rate, control_burst, clock)

    @classmethod
    def from_settings(cls, settings: RelayServerSettings) -> InboundRateLimiter:
        return cls(
            move_rate=settings.move_rate_limit,
            move_burst=settings.move_rate_burst,
            control_rate=settings.control_rate_limit,
            control_burst=settings.control_rate_burst,
        )

    def admit_frame(self) -> bool:
        return self._frames.take()

    def admit(self, message_type: object) -> bool:
        bucket = self._moves if message_type == ClientMessageType.MOVE else self._control
        return bucket.take()
