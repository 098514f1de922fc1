"""Per-action cooldown timers.

An action id is *ready* until it is armed, then *cooling down* until its
duration has elapsed on the tracker's clock. An infinite duration never
elapses, which is how one-shot actions stay locked for the rest of a game.
Expiry is evaluated on read, so no timer threads are needed.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class Cooldown:
    duration_ms: float
    started_ms: float

    @property
    def permanent(self) -> bool:
        return math.isinf(self.duration_ms)

    def elapsed(self, now_ms: float) -> float:
        return now_ms - self.started_ms

    def expired(self, now_ms: float) -> bool:
        return not self.permanent and self.elapsed(now_ms) >= self.duration_ms


class CooldownTracker:
    """Tracks which action ids are currently gated."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or monotonic_ms
        self._cooldowns: dict[str, Cooldown] = {}

    def arm(self, action_id: str, duration_ms: float) -> None:
        """Start (or restart) the cooldown for *action_id*."""
        if duration_ms <= 0:
            self._cooldowns.pop(action_id, None)
            return
        self._cooldowns[action_id] = Cooldown(duration_ms=duration_ms, started_ms=self._clock())

    def _active(self, action_id: str) -> Cooldown | None:
        cooldown = self._cooldowns.get(action_id)
        if cooldown is not None and cooldown.expired(self._clock()):
            del self._cooldowns[action_id]
            return None
        return cooldown

    def is_disabled(self, action_id: str) -> bool:
        return self._active(action_id) is not None

    def remaining_fraction(self, action_id: str) -> float:
        """1.0 just after arming, falling to 0.0 at expiry.

        Unarmed and permanent cooldowns report 0.0.
        """
        cooldown = self._active(action_id)
        if cooldown is None or cooldown.permanent:
            return 0.0
        progress = min(cooldown.elapsed(self._clock()) / cooldown.duration_ms, 1.0)
        return 1.0 - progress

    def active(self) -> dict[str, Cooldown]:
        """Snapshot of every cooldown that has not yet expired."""
        return {aid: cd for aid in list(self._cooldowns) if (cd := self._active(aid)) is not None}

    def reset(self) -> None:
        self._cooldowns.clear()
