from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .timeframe import Timeframe


RECORD_KIND = "OHLCV"


@dataclass(frozen=True)
class SeriesKey:
    """Identifies one ingestion stream, e.g. ``binance-BTCUSDT/1Min/OHLCV``."""

    provider: str
    symbol: str
    timeframe: str
    kind: str = RECORD_KIND

    @property
    def bucket(self) -> str:
        return f"{self.provider}-{self.symbol}/{self.timeframe}/{self.kind}"

    @classmethod
    def for_symbol(cls, provider: str, symbol: str, timeframe: Timeframe) -> "SeriesKey":
        return cls(provider, symbol, timeframe.canonical)

    def __str__(self) -> str:
        return self.bucket


@dataclass(frozen=True)
class RawCandle:
    """One provider record before parsing.

    Fields keep whatever encoding the exchange used (strings, ints, floats,
    Decimals); ``time_unit`` is "ms" or "s".
    """

    time: Any
    open: Any
    high: Any
    low: Any
    close: Any
    volume: Any
    time_unit: str = "ms"


@dataclass(frozen=True)
class CandleRecord:
    epoch: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class FetchWindow:
    """Half-open request range [start, end) in epoch seconds."""

    start: int
    end: int

    @property
    def start_ms(self) -> int:
        return self.start * 1000

    @property
    def end_ms(self) -> int:
        return self.end * 1000

    def __str__(self) -> str:
        return f"{fmt_epoch(self.start)} - {fmt_epoch(self.end)}"


class Mode(Enum):
    CATCH_UP = "catch-up"
    LIVE = "live"


class Outcome(Enum):
    OK = "ok"
    EMPTY_WINDOW = "empty-window"
    STALE = "stale"
    TRANSPORT_ERROR = "transport-error"
    STORE_ERROR = "store-error"
    CONVERSION_ERROR = "conversion-error"


def fmt_epoch(epoch: int) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
