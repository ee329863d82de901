from __future__ import annotations

from candle_feeder.errors import RateLimitError, TransportError
from candle_feeder.models import FetchWindow, Outcome, RawCandle, SeriesKey
from candle_feeder.pipeline import run_cycle
from candle_feeder.scheduler import Cursor
from candle_feeder.timeframe import parse

from fakes import T0, FakeProvider, MemoryStore, make_bar, make_bars


KEY = SeriesKey("fake", "BTCUSDT", "1Min")
MIN = parse("1Min")
WINDOW = FetchWindow(T0, T0 + 300 * 60)


def test_ok_cycle_sorts_writes_and_advances():
    raws = make_bars(T0, 5)
    raws.reverse()
    provider = FakeProvider(responses=[raws])
    store = MemoryStore()
    cur = Cursor(T0)

    res = run_cycle(provider, store, KEY, MIN, WINDOW, cur)
    assert res.outcome is Outcome.OK
    assert res.rows == 5 and res.last_epoch == T0 + 240
    assert provider.calls == [("BTCUSDT", "1Min", T0 * 1000, (T0 + 18000) * 1000)]
    assert store.epochs(KEY) == [T0 + i * 60 for i in range(5)]
    # advances only as far as confirmed data, not to the window end
    assert cur.position == T0 + 240 and cur.confirmed


def test_bad_record_aborts_batch():
    raws = make_bars(T0, 3) + [RawCandle((T0 + 180) * 1000, "abc", "1", "1", "1", "1", "ms")]
    store = MemoryStore()
    cur = Cursor(T0 - 60, confirmed=True)

    res = run_cycle(FakeProvider(responses=[raws]), store, KEY, MIN, WINDOW, cur)
    assert res.outcome is Outcome.CONVERSION_ERROR
    assert store.writes == []
    assert cur.position == T0 - 60


def test_transport_error_leaves_cursor():
    store = MemoryStore()
    cur = Cursor(T0)
    for err in (TransportError("boom"), RateLimitError("slow down", status=429)):
        res = run_cycle(FakeProvider(responses=[err]), store, KEY, MIN, WINDOW, cur)
        assert res.outcome is Outcome.TRANSPORT_ERROR
        assert "slow down" in res.error or "boom" in res.error
    assert cur.position == T0 and not cur.confirmed
    assert store.writes == []


def test_empty_response():
    cur = Cursor(T0)
    res = run_cycle(FakeProvider(responses=[[]]), MemoryStore(), KEY, MIN, WINDOW, cur)
    assert res.outcome is Outcome.EMPTY_WINDOW
    assert cur.position == T0 and not cur.confirmed


def test_store_failure_leaves_cursor():
    cur = Cursor(T0 - 60, confirmed=True)
    store = MemoryStore(fail_writes=1)
    res = run_cycle(FakeProvider(responses=[make_bars(T0, 3)]), store, KEY, MIN, WINDOW, cur)
    assert res.outcome is Outcome.STORE_ERROR
    assert cur.position == T0 - 60


def test_only_already_stored_bars_is_stale():
    cur = Cursor(T0, confirmed=True)
    store = MemoryStore()
    res = run_cycle(FakeProvider(responses=[[make_bar(T0, 120.0)]]), store, KEY, MIN, WINDOW, cur)
    assert res.outcome is Outcome.STALE
    # the still-forming bar is refreshed anyway
    assert store.series[KEY.bucket][T0].open == 120.0
    assert cur.position == T0


def test_gappy_batch_is_written():
    raws = [make_bar(T0), make_bar(T0 + 60), make_bar(T0 + 600)]
    cur = Cursor(T0)
    store = MemoryStore()
    res = run_cycle(FakeProvider(responses=[raws]), store, KEY, MIN, WINDOW, cur)
    assert res.outcome is Outcome.OK
    assert store.epochs(KEY) == [T0, T0 + 60, T0 + 600]
    assert cur.position == T0 + 600
