from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from .errors import InvalidTimeframe


logger = logging.getLogger(__name__)


class Unit(Enum):
    MINUTE = "Min"
    HOUR = "H"
    DAY = "D"
    WEEK = "W"
    MONTH = "M"


# Week and month are calendar-approximate so every provider buckets the same way
UNIT_SECONDS = {
    Unit.MINUTE: 60,
    Unit.HOUR: 3600,
    Unit.DAY: 86400,
    Unit.WEEK: 7 * 86400,
    Unit.MONTH: 30 * 86400,
}

# Accepted suffixes; the enum value is the canonical spelling
_SUFFIXES = {
    "Min": Unit.MINUTE,
    "T": Unit.MINUTE,
    "H": Unit.HOUR,
    "D": Unit.DAY,
    "W": Unit.WEEK,
    "M": Unit.MONTH,
}

_TIMEFRAME_RE = re.compile(r"^\s*(\d+)\s*([A-Za-z]+)\s*$")

DEFAULT_TIMEFRAME_TEXT = "1Min"


@dataclass(frozen=True)
class Timeframe:
    unit_count: int
    unit: Unit
    seconds: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.unit_count <= 0:
            raise InvalidTimeframe(f"{self.unit_count}{self.unit.value}", "unit count must be positive")
        object.__setattr__(self, "seconds", self.unit_count * UNIT_SECONDS[self.unit])

    @property
    def duration(self) -> timedelta:
        return timedelta(seconds=self.seconds)

    @property
    def canonical(self) -> str:
        return f"{self.unit_count}{self.unit.value}"

    def __str__(self) -> str:
        return self.canonical


def parse(text: str) -> Timeframe:
    """Parse "1Min", "5Min", "4H", "1D", "1W", "1M" into a Timeframe.

    Raises InvalidTimeframe when the count or suffix cannot be extracted.
    """
    m = _TIMEFRAME_RE.match(text or "")
    if m is None:
        raise InvalidTimeframe(text)
    count, suffix = int(m.group(1)), m.group(2)
    unit = _SUFFIXES.get(suffix)
    if unit is None:
        raise InvalidTimeframe(text, "unrecognized timeframe unit")
    return Timeframe(count, unit)


def default_timeframe() -> Timeframe:
    return parse(DEFAULT_TIMEFRAME_TEXT)


def parse_or_default(text: str) -> Timeframe:
    """Like parse(), but falls back to one minute and logs instead of failing."""
    try:
        return parse(text)
    except InvalidTimeframe as e:
        logger.error("%s; falling back to %s", e, DEFAULT_TIMEFRAME_TEXT)
        return default_timeframe()
