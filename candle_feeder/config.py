from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Tuple

import yaml

from .errors import ConfigError
from .scheduler import DEFAULT_BATCH_SIZE
from .throttle import Throttle
from .timeframe import DEFAULT_TIMEFRAME_TEXT


logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "binance"

# First matching layout wins
TIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d",
)


def parse_query_time(text: str) -> Optional[datetime]:
    """Parse a config timestamp as UTC; None when no layout matches."""
    text = text.strip()
    for layout in TIME_FORMATS:
        try:
            return datetime.strptime(text, layout).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def _query_time_option(conf: Mapping[str, Any], name: str) -> Optional[datetime]:
    raw = conf.get(name)
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        # YAML turns unquoted timestamps into datetimes already
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if isinstance(raw, date):
        return datetime.combine(raw, time(0, 0), tzinfo=timezone.utc)
    parsed = parse_query_time(str(raw))
    if parsed is None:
        raise ConfigError(f"{name}={raw!r} does not match any accepted time format")
    return parsed


def _symbols_option(raw: Any) -> Tuple[str, ...]:
    if raw is None or raw == "":
        return ()
    if isinstance(raw, str):
        raw = raw.replace(",", " ").split()
    if not isinstance(raw, Sequence):
        raise ConfigError(f"symbols must be a list of strings, got {raw!r}")
    return tuple(dict.fromkeys(str(s).strip() for s in raw if str(s).strip()))


@dataclass(frozen=True)
class WorkerConfig:
    provider: str = DEFAULT_PROVIDER
    # Empty means "discover all tradable symbols"
    symbols: Tuple[str, ...] = ()
    base_timeframe: str = DEFAULT_TIMEFRAME_TEXT
    query_start: Optional[datetime] = None
    query_end: Optional[datetime] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    throttle: Throttle = field(default_factory=Throttle)

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ConfigError(f"batch_size must be positive, got {self.batch_size}")
        if self.query_start and self.query_end and self.query_end <= self.query_start:
            raise ConfigError(f"query_end {self.query_end} is not after query_start {self.query_start}")

    @property
    def start_epoch(self) -> Optional[int]:
        return int(self.query_start.timestamp()) if self.query_start else None

    @property
    def end_epoch(self) -> Optional[int]:
        return int(self.query_end.timestamp()) if self.query_end else None

    @classmethod
    def from_mapping(cls, conf: Mapping[str, Any]) -> "WorkerConfig":
        """Build a config from the textual options a host process hands over.

        Recognized keys: provider, symbols, query_start, query_end,
        base_timeframe, batch_size, catchup_delay, empty_delay, error_cooldown.
        """
        unknown = set(conf) - _KNOWN_KEYS
        if unknown:
            logger.warning("ignoring unknown config options: %s", ", ".join(sorted(unknown)))
        try:
            batch_size = int(conf.get("batch_size", DEFAULT_BATCH_SIZE))
            defaults = Throttle()
            throttle = Throttle(
                catchup_delay=float(conf.get("catchup_delay", defaults.catchup_delay)),
                empty_delay=float(conf.get("empty_delay", defaults.empty_delay)),
                error_cooldown=float(conf.get("error_cooldown", defaults.error_cooldown)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid numeric option: {e}") from e
        return cls(
            provider=str(conf.get("provider") or DEFAULT_PROVIDER).lower(),
            symbols=_symbols_option(conf.get("symbols")),
            base_timeframe=str(conf.get("base_timeframe") or DEFAULT_TIMEFRAME_TEXT),
            query_start=_query_time_option(conf, "query_start"),
            query_end=_query_time_option(conf, "query_end"),
            batch_size=batch_size,
            throttle=throttle,
        )


_KNOWN_KEYS = {
    "provider",
    "symbols",
    "query_start",
    "query_end",
    "base_timeframe",
    "batch_size",
    "catchup_delay",
    "empty_delay",
    "error_cooldown",
}


def load_yaml(path: Path) -> dict:
    """Read worker options from a YAML file (a mapping at the top level)."""
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"error parsing config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data
