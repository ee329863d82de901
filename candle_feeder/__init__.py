"""Candle Feeder - resumable OHLCV ingestion from crypto exchanges.

Provides:
- Exchange adapters for Binance, Bitfinex and Coinbase (GDAX) candles
- A worker that backfills from the last stored bar, then tails live bars
- DuckDB persistence layer
"""

__version__ = "0.1.0"

from .config import WorkerConfig
from .worker import Worker, build_worker

__all__ = ["WorkerConfig", "Worker", "build_worker", "__version__"]
