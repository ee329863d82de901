from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import Mode, Outcome


@dataclass(frozen=True)
class Throttle:
    """Decides how long a symbol waits before its next cycle.

    This is the only backpressure in the feeder; errors of any kind, rate
    limits included, get the same fixed cooldown.
    """

    catchup_delay: float = 0.5
    empty_delay: float = 10.0
    error_cooldown: float = 60.0

    def next_delay(self, mode: Mode, outcome: Outcome, now: float, next_bar_close: Optional[float] = None) -> float:
        if outcome in (Outcome.TRANSPORT_ERROR, Outcome.STORE_ERROR, Outcome.CONVERSION_ERROR):
            return self.error_cooldown
        if outcome in (Outcome.EMPTY_WINDOW, Outcome.STALE):
            return self.empty_delay
        if mode is Mode.LIVE and next_bar_close is not None:
            return max(next_bar_close - now, 0.0)
        return self.catchup_delay
