from __future__ import annotations

from typing import List

from ..errors import InvalidTimeframe, TransportError
from ..models import RawCandle
from ..timeframe import Timeframe, Unit, parse
from .base import ExchangeProvider, candle_rows


BINANCE_API = "https://api.binance.com"
MAX_LIMIT = 1000

SUFFIXES = {
    Unit.MINUTE: "m",
    Unit.HOUR: "h",
    Unit.DAY: "d",
    Unit.WEEK: "w",
    Unit.MONTH: "M",
}
SUPPORTED_INTERVALS = {
    "1m", "3m", "5m", "15m", "30m",
    "1h", "2h", "4h", "6h", "8h", "12h",
    "1d", "3d", "1w", "1M",
}


class BinanceProvider(ExchangeProvider):
    name = "binance"
    fallback_symbols = ("BTCUSDT", "ETHUSDT", "LTCUSDT", "ETHBTC")

    def __init__(self, base_url: str = BINANCE_API, **kwargs) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    def interval(self, timeframe: Timeframe) -> str:
        iv = f"{timeframe.unit_count}{SUFFIXES[timeframe.unit]}"
        if iv not in SUPPORTED_INTERVALS:
            raise InvalidTimeframe(timeframe.canonical, "binance has no such interval")
        return iv

    def fetch_candles(self, symbol: str, timeframe: str, start_ms: int, end_ms: int) -> List[RawCandle]:
        """Fetch klines opening in [start_ms, end_ms).

        Returns RawCandle with string price/volume fields as returned by the API.
        """
        payload = self._get(
            f"{self.base_url}/api/v3/klines",
            {
                "symbol": symbol,
                "interval": self.interval(parse(timeframe)),
                "startTime": start_ms,
                # endTime is inclusive on Binance
                "endTime": end_ms - 1,
                "limit": MAX_LIMIT,
            },
        )
        if isinstance(payload, dict):
            raise TransportError(f"binance error {payload.get('code')}: {payload.get('msg')}")
        # Row format per Binance docs
        # [ openTime, open, high, low, close, volume, closeTime, quoteAssetVolume,
        #   numberOfTrades, takerBuyBaseAssetVolume, takerBuyQuoteAssetVolume, ignore ]
        return [
            RawCandle(row[0], row[1], row[2], row[3], row[4], row[5], "ms")
            for row in candle_rows(payload, 6, self.name)
        ]

    def fetch_symbols(self) -> List[str]:
        payload = self._get(f"{self.base_url}/api/v3/exchangeInfo")
        try:
            return [s["symbol"] for s in payload["symbols"] if s.get("status") == "TRADING"]
        except (KeyError, TypeError) as e:
            raise TransportError(f"unexpected exchangeInfo payload: {e}") from e
