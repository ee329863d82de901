from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from .timeframe import Timeframe


@dataclass(frozen=True)
class BatchReport:
    rows: int
    gaps: int
    missing_bars: int
    ohlc_violations: int
    increasing: bool

    @property
    def clean(self) -> bool:
        return self.increasing and self.gaps == 0 and self.ohlc_violations == 0


def check_batch(df: pd.DataFrame, timeframe: Timeframe) -> BatchReport:
    """Summarize data-quality issues in a normalized batch.

    - gaps: steps between consecutive epochs longer than one bar
    - missing_bars: bars those gaps skip over
    - ohlc_violations: rows with high < max(open, close) or low > min(open, close)

    Providers do send such rows; they are reported, never rejected.
    """
    if df.empty:
        return BatchReport(0, 0, 0, 0, True)

    epochs = df["epoch"].to_numpy(dtype=np.int64)
    steps = np.diff(epochs)
    increasing = bool((steps > 0).all())
    wide = steps[steps > timeframe.seconds]
    missing = int((wide // timeframe.seconds - 1).sum()) if wide.size else 0

    o = df["open"].to_numpy(dtype=float)
    c = df["close"].to_numpy(dtype=float)
    h = df["high"].to_numpy(dtype=float)
    lo = df["low"].to_numpy(dtype=float)
    bad = (h < np.maximum(o, c)) | (lo > np.minimum(o, c))

    return BatchReport(
        rows=len(df),
        gaps=int(wide.size),
        missing_bars=missing,
        ohlc_violations=int(bad.sum()),
        increasing=increasing,
    )
