from __future__ import annotations

from typing import List

from ..errors import InvalidTimeframe, TransportError
from ..models import RawCandle
from ..timeframe import Timeframe, Unit, parse
from .base import ExchangeProvider, candle_rows


BITFINEX_API = "https://api-pub.bitfinex.com"
BITFINEX_V1_API = "https://api.bitfinex.com"
MAX_LIMIT = 10000

SUPPORTED_INTERVALS = {
    "1m", "5m", "15m", "30m",
    "1h", "3h", "6h", "12h",
    "1D", "1W", "14D", "1M",
}


class BitfinexProvider(ExchangeProvider):
    """Bitfinex v2 public candles.

    Candle rows come back as ``[MTS, OPEN, CLOSE, HIGH, LOW, VOLUME]`` with
    numeric fields; note close precedes high and low.
    """

    name = "bitfinex"
    fallback_symbols = ("BTCUSD",)

    def __init__(self, base_url: str = BITFINEX_API, symbols_url: str = BITFINEX_V1_API, **kwargs) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self.symbols_url = symbols_url.rstrip("/")

    def interval(self, timeframe: Timeframe) -> str:
        n, unit = timeframe.unit_count, timeframe.unit
        if unit is Unit.MINUTE:
            iv = f"{n}m"
        elif unit is Unit.HOUR:
            iv = f"{n}h"
        elif unit is Unit.DAY:
            iv = "1W" if n == 7 else f"{n}D"
        elif unit is Unit.WEEK:
            iv = {1: "1W", 2: "14D"}.get(n, f"{n}W")
        else:
            iv = f"{n}M"
        if iv not in SUPPORTED_INTERVALS:
            raise InvalidTimeframe(timeframe.canonical, "bitfinex has no such interval")
        return iv

    def fetch_candles(self, symbol: str, timeframe: str, start_ms: int, end_ms: int) -> List[RawCandle]:
        key = f"trade:{self.interval(parse(timeframe))}:t{symbol}"
        payload = self._get(
            f"{self.base_url}/v2/candles/{key}/hist",
            # end is inclusive on Bitfinex
            {"start": start_ms, "end": end_ms - 1, "limit": MAX_LIMIT, "sort": 1},
        )
        if isinstance(payload, list) and payload and payload[0] == "error":
            raise TransportError(f"bitfinex error: {payload[1:]}")
        return [
            RawCandle(row[0], row[1], row[3], row[4], row[2], row[5], "ms")
            for row in candle_rows(payload, 6, self.name)
        ]

    def fetch_symbols(self) -> List[str]:
        payload = self._get(f"{self.symbols_url}/v1/symbols")
        if not isinstance(payload, list):
            raise TransportError(f"unexpected symbols payload: {payload!r}")
        return [str(s).upper() for s in payload]
