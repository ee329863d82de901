from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .config import WorkerConfig
from .errors import ConfigError, InvalidTimeframe
from .models import Mode, Outcome, SeriesKey, fmt_epoch
from .pipeline import CycleResult, run_cycle
from .providers import ExchangeProvider, get_provider
from .resume import last_stored_timestamp
from .scheduler import Cursor, WindowScheduler
from .throttle import Throttle
from .timeframe import Timeframe, default_timeframe, parse_or_default


logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_SECONDS = 3600
EMPTY_WARN_EVERY = 10


class Clock:
    """Wall clock with a sleep that a stop signal can cut short."""

    def now(self) -> float:
        return time.time()

    def wait(self, seconds: float, stop: threading.Event) -> bool:
        """Sleep up to ``seconds``; returns True if stopped meanwhile."""
        return stop.wait(max(seconds, 0.0))


@dataclass
class SymbolFeed:
    key: SeriesKey
    scheduler: WindowScheduler
    cursor: Optional[Cursor] = None
    next_due: float = 0.0
    empty_streak: int = 0
    last_result: Optional[CycleResult] = field(default=None, repr=False)


class Worker:
    """Keeps every configured symbol's series up to date in the store.

    Each symbol has its own cursor and its own pace; the loop always serves
    whichever symbol is due next and sleeps in between. ``run`` only returns
    once ``stop`` is called (or ``max_cycles`` is hit).
    """

    def __init__(
        self,
        config: WorkerConfig,
        provider: ExchangeProvider,
        store,
        symbols: Sequence[str],
        timeframe: Timeframe,
        clock: Optional[Clock] = None,
    ) -> None:
        if not symbols:
            raise ConfigError("worker needs at least one symbol")
        self.config = config
        self.provider = provider
        self.store = store
        self.symbols = list(symbols)
        self.timeframe = timeframe
        self.throttle: Throttle = config.throttle
        self.clock = clock or Clock()
        self._stop = threading.Event()
        self.feeds: List[SymbolFeed] = [
            SymbolFeed(
                key=SeriesKey.for_symbol(provider.name, s, timeframe),
                scheduler=WindowScheduler(timeframe, config.batch_size, config.end_epoch),
            )
            for s in self.symbols
        ]

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        self._stop.set()

    def seed(self) -> None:
        """Place each symbol's cursor from the store, else from the configured start."""
        now = self.clock.now()
        default_start = self.config.start_epoch
        if default_start is None:
            default_start = int(now) - DEFAULT_LOOKBACK_SECONDS
        for feed in self.feeds:
            last = last_stored_timestamp(self.store, feed.key)
            if last is None:
                feed.cursor = Cursor(default_start)
                logger.info("%s: no stored bars, starting at %s", feed.key.bucket, fmt_epoch(default_start))
            else:
                feed.cursor = Cursor(last, confirmed=True)
            feed.next_due = now

    def step(self, feed: SymbolFeed) -> float:
        """Run one cycle for ``feed``; returns the delay before its next cycle."""
        now = self.clock.now()
        plan = feed.scheduler.plan(feed.cursor, now)
        result = run_cycle(self.provider, self.store, feed.key, self.timeframe, plan.window, feed.cursor)
        feed.last_result = result

        if result.outcome in (Outcome.OK, Outcome.STALE):
            feed.scheduler.on_success(plan, advanced=result.outcome is Outcome.OK)
        if result.outcome in (Outcome.EMPTY_WINDOW, Outcome.STALE):
            feed.empty_streak += 1
            if feed.empty_streak % EMPTY_WARN_EVERY == 0:
                logger.warning(
                    "%s: %d cycles without new bars at %s",
                    feed.key.bucket, feed.empty_streak, fmt_epoch(feed.cursor.position),
                )
        elif result.outcome is Outcome.OK:
            feed.empty_streak = 0

        now = self.clock.now()
        next_close = feed.scheduler.next_bar_close(feed.cursor)
        delay = self.throttle.next_delay(plan.mode, result.outcome, now, next_close)
        if plan.mode is Mode.LIVE and result.outcome is Outcome.OK:
            logger.info("next expected(%s) - now(%s) = %.1fs", fmt_epoch(next_close), fmt_epoch(int(now)), delay)
        return delay

    def run(self, max_cycles: Optional[int] = None) -> int:
        """Drive all symbols until stopped; returns the number of cycles run."""
        self.seed()
        cycles = 0
        while not self._stop.is_set():
            feed = min(self.feeds, key=lambda f: f.next_due)
            pending = feed.next_due - self.clock.now()
            if pending > 0 and self.clock.wait(pending, self._stop):
                break
            delay = self.step(feed)
            feed.next_due = self.clock.now() + delay
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
        logger.info("worker stopped after %d cycle(s)", cycles)
        return cycles


def resolve_timeframe(config: WorkerConfig, provider: ExchangeProvider) -> Timeframe:
    tf = parse_or_default(config.base_timeframe)
    try:
        provider.interval(tf)
    except InvalidTimeframe as e:
        fallback = default_timeframe()
        logger.error("%s; falling back to %s", e, fallback)
        return fallback
    return tf


def build_worker(
    config: WorkerConfig,
    store,
    provider: Optional[ExchangeProvider] = None,
    clock: Optional[Clock] = None,
) -> Worker:
    """Construct a worker, discovering symbols from the provider if none are configured.

    Raises ConfigError when no usable worker can be built.
    """
    provider = provider or get_provider(config.provider)
    timeframe = resolve_timeframe(config, provider)
    symbols = list(config.symbols) or provider.list_tradable_symbols()
    if not symbols:
        raise ConfigError(f"{provider.name}: no symbols configured and none discovered")
    logger.info("%s worker: %d symbol(s) at %s", provider.name, len(symbols), timeframe)
    return Worker(config, provider, store, symbols, timeframe, clock=clock)
