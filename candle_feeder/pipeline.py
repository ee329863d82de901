from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import ConversionError, StoreWriteError, TransportError
from .models import FetchWindow, Outcome, SeriesKey, fmt_epoch
from .normalize import normalize_batch
from .scheduler import Cursor
from .timeframe import Timeframe
from .validation import check_batch


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleResult:
    outcome: Outcome
    rows: int = 0
    last_epoch: Optional[int] = None
    error: Optional[str] = None


def run_cycle(provider, store, key: SeriesKey, timeframe: Timeframe, window: FetchWindow, cursor: Cursor) -> CycleResult:
    """Fetch one window, normalize it, write it, then advance the cursor.

    The cursor only moves after the store has accepted the batch. Every
    failure is reported as an Outcome; nothing here raises.
    """
    logger.info("Requesting %s %s", key.symbol, window)
    try:
        raws = provider.fetch_candles(key.symbol, key.timeframe, window.start_ms, window.end_ms)
    except TransportError as e:
        logger.warning("%s: response error: %s", key.bucket, e)
        return CycleResult(Outcome.TRANSPORT_ERROR, error=str(e))

    if not raws:
        logger.info("%s: no rows for %s", key.bucket, window)
        return CycleResult(Outcome.EMPTY_WINDOW)

    try:
        batch = normalize_batch(raws)
    except ConversionError as e:
        logger.error("%s: batch not written, needs attention: %s", key.bucket, e)
        for failure in e.failures[1:5]:
            logger.error("%s:   %s", key.bucket, failure)
        return CycleResult(Outcome.CONVERSION_ERROR, error=str(e))

    report = check_batch(batch, timeframe)
    if report.gaps:
        logger.warning(
            "%s: %d gap(s) inside %s, %d bar(s) missing (not backfilled)",
            key.bucket, report.gaps, window, report.missing_bars,
        )
    if report.ohlc_violations:
        logger.warning("%s: %d row(s) with inconsistent OHLC", key.bucket, report.ohlc_violations)

    try:
        written = store.write(key, batch)
    except StoreWriteError as e:
        logger.warning("%s: %s", key.bucket, e)
        return CycleResult(Outcome.STORE_ERROR, error=str(e))

    first, last = int(batch["epoch"].iloc[0]), int(batch["epoch"].iloc[-1])
    moved = cursor.advance(last)
    logger.info("%s: %d rates between %s - %s", key.symbol, written, fmt_epoch(first), fmt_epoch(last))
    return CycleResult(Outcome.OK if moved else Outcome.STALE, rows=written, last_epoch=last)
