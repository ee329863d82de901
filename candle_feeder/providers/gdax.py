from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from ..errors import InvalidTimeframe, TransportError
from ..models import RawCandle
from ..timeframe import Timeframe, parse
from .base import ExchangeProvider, candle_rows


GDAX_API = "https://api.exchange.coinbase.com"

# Candle granularities the exchange serves, in seconds
GRANULARITIES = (60, 300, 900, 3600, 21600, 86400)


def _iso(ms: int) -> str:
    return datetime.fromtimestamp(ms // 1000, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GdaxProvider(ExchangeProvider):
    """Coinbase Exchange (formerly GDAX) historic rates.

    Rows are ``[time, low, high, open, close, volume]`` with time in seconds,
    newest first.
    """

    name = "gdax"
    fallback_symbols = (
        "BCH-BTC", "BCH-USD", "BTC-EUR", "BTC-GBP", "BTC-USD", "ETH-BTC",
        "ETH-EUR", "ETH-USD", "LTC-BTC", "LTC-EUR", "LTC-USD", "BCH-EUR",
    )

    def __init__(self, base_url: str = GDAX_API, **kwargs) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    def interval(self, timeframe: Timeframe) -> str:
        if timeframe.seconds not in GRANULARITIES:
            raise InvalidTimeframe(timeframe.canonical, "gdax has no such granularity")
        return str(timeframe.seconds)

    def fetch_candles(self, symbol: str, timeframe: str, start_ms: int, end_ms: int) -> List[RawCandle]:
        granularity = self.interval(parse(timeframe))
        payload = self._get(
            f"{self.base_url}/products/{symbol}/candles",
            {"granularity": granularity, "start": _iso(start_ms), "end": _iso(end_ms - 1000)},
        )
        if isinstance(payload, dict):
            raise TransportError(f"gdax error: {payload.get('message', payload)}")
        return [
            RawCandle(row[0], row[3], row[2], row[1], row[4], row[5], "s")
            for row in candle_rows(payload, 6, self.name)
        ]

    def fetch_symbols(self) -> List[str]:
        payload = self._get(f"{self.base_url}/products")
        if not isinstance(payload, list):
            raise TransportError(f"unexpected products payload: {payload!r}")
        return [p["id"] for p in payload if isinstance(p, dict) and "id" in p and not p.get("trading_disabled")]
