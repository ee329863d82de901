from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional

import pandas as pd

from candle_feeder.errors import InvalidTimeframe, StoreWriteError, TransportError
from candle_feeder.models import CandleRecord, RawCandle, SeriesKey
from candle_feeder.providers.base import ExchangeProvider
from candle_feeder.timeframe import Timeframe


# 2024-01-01 00:00:00 UTC
T0 = 1_704_067_200


class FakeClock:
    """Manual clock: waiting advances time instantly and is recorded."""

    def __init__(self, now: float = T0) -> None:
        self._now = float(now)
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds

    def wait(self, seconds: float, stop: threading.Event) -> bool:
        self.sleeps.append(seconds)
        self._now += seconds
        return stop.is_set()


def make_bar(epoch: int, open_val: float = 100.0, unit: str = "ms") -> RawCandle:
    t = epoch * 1000 if unit == "ms" else epoch
    return RawCandle(
        time=t,
        open=f"{open_val}",
        high=f"{open_val + 2}",
        low=f"{open_val - 2}",
        close=f"{open_val + 1}",
        volume="10.0",
        time_unit=unit,
    )


def make_bars(start: int, n: int, step: int = 60) -> List[RawCandle]:
    return [make_bar(start + i * step, 100.0 + i) for i in range(n)]


class FakeProvider(ExchangeProvider):
    """Provider whose responses are scripted per call.

    ``responses`` items are either a list of RawCandle or an exception to raise;
    once exhausted, ``default`` (a callable taking start/end seconds) answers.
    """

    name = "fake"
    fallback_symbols = ("FALLBACK1", "FALLBACK2")

    def __init__(
        self,
        responses=None,
        default: Optional[Callable[[int, int], List[RawCandle]]] = None,
        symbols=None,
        supported: Optional[set] = None,
    ) -> None:
        super().__init__()
        self.responses = list(responses or [])
        self.default = default or (lambda start, end: [])
        self.symbols = symbols
        self.supported = supported
        self.calls: List[tuple] = []
        self.symbol_calls = 0

    def interval(self, timeframe: Timeframe) -> str:
        if self.supported is not None and timeframe.canonical not in self.supported:
            raise InvalidTimeframe(timeframe.canonical, "fake has no such interval")
        return timeframe.canonical

    def fetch_candles(self, symbol, timeframe, start_ms, end_ms):
        self.calls.append((symbol, timeframe, start_ms, end_ms))
        if self.responses:
            resp = self.responses.pop(0)
            if isinstance(resp, Exception):
                raise resp
            return list(resp)
        return self.default(start_ms // 1000, end_ms // 1000)

    def fetch_symbols(self):
        self.symbol_calls += 1
        if isinstance(self.symbols, Exception):
            raise self.symbols
        if self.symbols is None:
            raise TransportError("no symbol endpoint")
        return list(self.symbols)


class MarketProvider(FakeProvider):
    """Serves one bar per ``step`` seconds for every open time up to the clock's now."""

    def __init__(self, clock: FakeClock, step: int = 60, **kwargs) -> None:
        super().__init__(default=self._bars, **kwargs)
        self.clock = clock
        self.step = step

    def _bars(self, start: int, end: int) -> List[RawCandle]:
        first = -(-start // self.step) * self.step
        last_open = int(self.clock.now()) // self.step * self.step
        stop = min(end - 1, last_open)
        return [make_bar(t, 100.0 + (t // self.step) % 50) for t in range(first, stop + 1, self.step)]


class MemoryStore:
    """Dict-backed store with overwrite-by-epoch semantics."""

    def __init__(self, fail_writes: int = 0) -> None:
        self.series: Dict[str, Dict[int, CandleRecord]] = {}
        self.fail_writes = fail_writes
        self.writes: List[tuple] = []

    def write(self, key: SeriesKey, batch: pd.DataFrame) -> int:
        if self.fail_writes:
            self.fail_writes -= 1
            raise StoreWriteError(f"write to {key.bucket} failed: disk full")
        rows = self.series.setdefault(key.bucket, {})
        for r in batch.itertuples(index=False):
            rows[int(r.epoch)] = CandleRecord(int(r.epoch), r.open, r.high, r.low, r.close, r.volume)
        self.writes.append((key.bucket, len(batch)))
        return len(batch)

    def query_last(self, key: SeriesKey, start: int = 0, end: Optional[int] = None) -> Optional[CandleRecord]:
        rows = self.series.get(key.bucket, {})
        epochs = [e for e in rows if e >= start and (end is None or e < end)]
        if not epochs:
            return None
        return rows[max(epochs)]

    def epochs(self, key: SeriesKey) -> List[int]:
        return sorted(self.series.get(key.bucket, {}))
