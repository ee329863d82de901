from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .models import FetchWindow, Mode, fmt_epoch
from .timeframe import Timeframe


logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 300


@dataclass
class Cursor:
    """Ingestion progress for one symbol.

    ``position`` is where the next window starts. Until the first write it
    holds the configured start and ``confirmed`` is False; afterwards it is
    the newest bar known to be stored.
    """

    position: int
    confirmed: bool = False

    def advance(self, epoch: int) -> bool:
        """Move to ``epoch`` if it is newer; returns True when the cursor moved."""
        if not self.confirmed:
            self.position = int(epoch)
            self.confirmed = True
            return True
        if epoch > self.position:
            self.position = int(epoch)
            return True
        return False


@dataclass(frozen=True)
class Plan:
    mode: Mode
    window: FetchWindow


class WindowScheduler:
    """Computes the next fetch window for one symbol and classifies the mode.

    Catch-up requests full batches of ``batch_size`` bars; live requests run
    from the cursor to now. With an explicit end the scheduler backfills up to
    it, then switches to open-ended live tailing for good.

    A catch-up window that brings nothing newer than the cursor is a gap on
    the provider side; the next window starts where that one ended while the
    cursor itself stays on the last stored bar.
    """

    def __init__(self, timeframe: Timeframe, batch_size: int = DEFAULT_BATCH_SIZE, end: Optional[int] = None):
        self.timeframe = timeframe
        self.batch_size = batch_size
        self.end = end
        self.end_reached = end is None
        self.gap_start: Optional[int] = None

    @property
    def span(self) -> int:
        return self.batch_size * self.timeframe.seconds

    @property
    def bounded(self) -> bool:
        return not self.end_reached

    def window_start(self, cursor: Cursor) -> int:
        if self.gap_start is not None and self.gap_start > cursor.position:
            return self.gap_start
        return cursor.position

    def plan(self, cursor: Cursor, now: float) -> Plan:
        pos = self.window_start(cursor)
        if self.bounded and pos >= self.end:
            self._finish_range()

        if self.bounded:
            return Plan(Mode.CATCH_UP, FetchWindow(pos, min(pos + self.span, self.end)))

        now_s = int(now)
        if not cursor.confirmed or now_s - pos > self.span:
            return Plan(Mode.CATCH_UP, FetchWindow(pos, pos + self.span))
        return Plan(Mode.LIVE, FetchWindow(pos, max(now_s, pos + self.timeframe.seconds)))

    def on_success(self, plan: Plan, advanced: bool = True) -> None:
        """Record that ``plan`` was fetched and written; ``advanced`` is whether the cursor moved."""
        window = plan.window
        if advanced:
            self.gap_start = None
        elif plan.mode is Mode.CATCH_UP:
            logger.info("No new bars in %s; next window starts at %s", window, fmt_epoch(window.end))
            self.gap_start = window.end
        if self.bounded and window.end >= self.end:
            self._finish_range()

    def next_bar_close(self, cursor: Cursor) -> int:
        # The bar after the cursor closes one full bar after it opens
        return cursor.position + 2 * self.timeframe.seconds

    def _finish_range(self) -> None:
        logger.info("Got all data up to %s; continuing live", fmt_epoch(self.end))
        self.end_reached = True
