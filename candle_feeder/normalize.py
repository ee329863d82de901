from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Tuple

import pandas as pd

from .errors import ConversionError
from .models import CandleRecord, RawCandle


COLUMNS = ["epoch", "open", "high", "low", "close", "volume"]
PRICE_FIELDS = ("open", "high", "low", "close", "volume")


@dataclass(frozen=True)
class NormalizeResult:
    ok: bool
    record: Optional[CandleRecord]
    errors: Tuple[str, ...] = ()


def _to_float(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, str):
        value = value.strip()
    # Decimal keeps fixed-point strings exact until the final cast
    try:
        out = float(Decimal(value)) if isinstance(value, (str, Decimal)) else float(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"not a number: {value!r}") from None
    if not math.isfinite(out):
        raise ValueError(f"non-finite value: {value!r}")
    return out


def _to_epoch_seconds(value: Any, unit: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value.lstrip("-").isdigit():
            raise ValueError(f"not a timestamp: {value!r}")
        value = int(value)
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"fractional timestamp: {value!r}")
        value = int(value)
    elif not isinstance(value, int):
        raise ValueError(f"not a timestamp: {value!r}")
    if unit == "ms":
        return value // 1000
    if unit == "s":
        return value
    raise ValueError(f"unknown time unit {unit!r}")


def normalize(raw: RawCandle) -> NormalizeResult:
    """Convert one raw provider record into a typed CandleRecord.

    Every field is parsed independently and all failures are collected; any
    failure rejects the whole record.
    """
    errors: List[str] = []
    values = {}
    try:
        values["epoch"] = _to_epoch_seconds(raw.time, raw.time_unit)
    except ValueError as e:
        errors.append(f"time: {e}")
    for name in PRICE_FIELDS:
        try:
            values[name] = _to_float(getattr(raw, name))
        except ValueError as e:
            errors.append(f"{name}: {e}")
    if errors:
        return NormalizeResult(False, None, tuple(errors))
    return NormalizeResult(True, CandleRecord(**values))


def empty_frame() -> pd.DataFrame:
    return pd.DataFrame(columns=COLUMNS).astype(
        {"epoch": "int64", "open": float, "high": float, "low": float, "close": float, "volume": float}
    )


def records_to_frame(records: Iterable[CandleRecord]) -> pd.DataFrame:
    """Build the canonical batch: epoch, open, high, low, close, volume.

    - epoch: int64 seconds
    - numerical columns: float64
    - sorted ascending by epoch, one row per epoch (last wins)
    """
    rows = [
        {"epoch": r.epoch, "open": r.open, "high": r.high, "low": r.low, "close": r.close, "volume": r.volume}
        for r in records
    ]
    if not rows:
        return empty_frame()
    df = pd.DataFrame(rows, columns=COLUMNS).astype({"epoch": "int64"})
    df = df.sort_values("epoch", kind="mergesort")
    df = df[~df["epoch"].duplicated(keep="last")].reset_index(drop=True)
    return df


def normalize_batch(raws: Iterable[RawCandle]) -> pd.DataFrame:
    """Normalize a provider response into a sorted batch frame.

    Raises ConversionError if any record fails; no partial batch is returned.
    """
    records: List[CandleRecord] = []
    failures: List[str] = []
    for i, raw in enumerate(raws):
        res = normalize(raw)
        if res.ok:
            records.append(res.record)
        else:
            failures.append(f"record {i} ({raw.time!r}): " + "; ".join(res.errors))
    if failures:
        raise ConversionError(f"{len(failures)} unparsable record(s): {failures[0]}", failures)
    return records_to_frame(records)
