from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from candle_feeder.config import WorkerConfig, load_yaml, parse_query_time
from candle_feeder.errors import ConfigError
from candle_feeder.scheduler import DEFAULT_BATCH_SIZE


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2024-01-02 03:04:05", _utc(2024, 1, 2, 3, 4, 5)),
        ("2024-01-02T03:04:05", _utc(2024, 1, 2, 3, 4, 5)),
        ("2024-01-02 03:04", _utc(2024, 1, 2, 3, 4)),
        ("2024-01-02T03:04", _utc(2024, 1, 2, 3, 4)),
        ("2024-01-02", _utc(2024, 1, 2)),
        ("  2024-01-02  ", _utc(2024, 1, 2)),
    ],
)
def test_parse_query_time_layouts(text, expected):
    assert parse_query_time(text) == expected


@pytest.mark.parametrize("text", ["", "yesterday", "2024/01/02", "2024-13-01", "1704067200"])
def test_parse_query_time_rejects(text):
    assert parse_query_time(text) is None


def test_defaults():
    cfg = WorkerConfig.from_mapping({})
    assert cfg.provider == "binance"
    assert cfg.symbols == ()
    assert cfg.base_timeframe == "1Min"
    assert cfg.batch_size == DEFAULT_BATCH_SIZE == 300
    assert cfg.start_epoch is None and cfg.end_epoch is None
    assert cfg.throttle.error_cooldown == 60.0


def test_symbols_from_string_or_list():
    assert WorkerConfig.from_mapping({"symbols": "BTCUSDT, ETHUSDT BTCUSDT"}).symbols == ("BTCUSDT", "ETHUSDT")
    assert WorkerConfig.from_mapping({"symbols": ["LTCBTC", " ", "LTCBTC"]}).symbols == ("LTCBTC",)
    with pytest.raises(ConfigError):
        WorkerConfig.from_mapping({"symbols": {"BTC": 1}})


def test_numeric_options():
    cfg = WorkerConfig.from_mapping({"batch_size": "500", "empty_delay": 2, "provider": "GDAX"})
    assert cfg.batch_size == 500
    assert cfg.throttle.empty_delay == 2.0
    assert cfg.provider == "gdax"
    with pytest.raises(ConfigError):
        WorkerConfig.from_mapping({"batch_size": "many"})
    with pytest.raises(ConfigError):
        WorkerConfig.from_mapping({"batch_size": 0})


def test_end_must_follow_start():
    with pytest.raises(ConfigError):
        WorkerConfig.from_mapping({"query_start": "2024-01-02", "query_end": "2024-01-01"})
    cfg = WorkerConfig.from_mapping({"query_start": "2024-01-01", "query_end": "2024-01-01 00:01"})
    assert cfg.end_epoch - cfg.start_epoch == 60


def test_unparseable_time_is_a_startup_failure():
    with pytest.raises(ConfigError, match="query_start"):
        WorkerConfig.from_mapping({"query_start": "last tuesday"})
    with pytest.raises(ConfigError, match="query_end"):
        WorkerConfig.from_mapping({"query_end": "2024/01/02"})


def test_unknown_option_is_warned_about(caplog):
    with caplog.at_level(logging.WARNING, logger="candle_feeder.config"):
        cfg = WorkerConfig.from_mapping({"colour": "blue"})
    assert cfg.provider == "binance"
    assert "colour" in caplog.text


def test_load_yaml_with_native_dates(tmp_path):
    path = tmp_path / "feeder.yaml"
    path.write_text(
        "provider: bitfinex\n"
        "symbols: [BTCUSD, ETHUSD]\n"
        "query_start: 2024-01-01\n"
        "query_end: 2024-01-02 12:00:00\n"
        "base_timeframe: 1H\n",
        encoding="utf-8",
    )
    cfg = WorkerConfig.from_mapping(load_yaml(path))
    assert cfg.provider == "bitfinex"
    assert cfg.symbols == ("BTCUSD", "ETHUSD")
    assert cfg.query_start == _utc(2024, 1, 1)
    assert cfg.query_end == _utc(2024, 1, 2, 12)
    assert cfg.base_timeframe == "1H"


def test_load_yaml_errors(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_yaml(tmp_path / "missing.yaml")

    bad = tmp_path / "bad.yaml"
    bad.write_text("symbols: [BTC\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="parsing"):
        load_yaml(bad)

    listing = tmp_path / "list.yaml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_yaml(listing)

    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert load_yaml(empty) == {}
