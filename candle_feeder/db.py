from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import duckdb  # type: ignore
import pandas as pd

from .errors import StoreWriteError
from .models import CandleRecord, SeriesKey
from .normalize import COLUMNS


TABLE_NAME = "ohlcv"


def _connect(db_path: Path):
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(db_path))


def ensure_table(db_path: Path) -> None:
    con = _connect(db_path)
    try:
        con.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
              bucket VARCHAR NOT NULL,
              epoch BIGINT NOT NULL,
              open DOUBLE,
              high DOUBLE,
              low DOUBLE,
              close DOUBLE,
              volume DOUBLE,
              created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
              PRIMARY KEY (bucket, epoch)
            );
            """
        )
    finally:
        con.close()


def write_batch(db_path: Path, key: SeriesKey, batch: pd.DataFrame) -> int:
    """Write a batch for one series in a single transaction.

    Rows whose epoch is already stored are overwritten, so resending a
    window leaves the table unchanged. Returns the number of rows sent.
    """
    if batch.empty:
        return 0
    frame = batch.loc[:, COLUMNS].copy()
    frame.insert(0, "bucket", key.bucket)
    con = None
    try:
        # Opening can fail too, e.g. another process holds the file lock
        con = _connect(db_path)
        con.register("batch_df", frame)
        con.begin()
        try:
            con.execute(
                f"""
                INSERT OR REPLACE INTO {TABLE_NAME} (bucket, epoch, open, high, low, close, volume)
                SELECT bucket, epoch, open, high, low, close, volume FROM batch_df;
                """
            )
            con.commit()
        except duckdb.Error as e:
            con.rollback()
            raise StoreWriteError(f"write to {key.bucket} failed: {e}") from e
        finally:
            con.unregister("batch_df")
    except (duckdb.Error, OSError) as e:
        raise StoreWriteError(f"write to {key.bucket} failed: {e}") from e
    finally:
        if con is not None:
            con.close()
    return len(frame)


def query_last(db_path: Path, key: SeriesKey, start: int = 0, end: Optional[int] = None) -> Optional[CandleRecord]:
    """Most recent row of the series within [start, end); None when there is none."""
    con = _connect(db_path)
    try:
        q = f"""
            SELECT epoch, open, high, low, close, volume
            FROM {TABLE_NAME}
            WHERE bucket = ? AND epoch >= ?
        """
        params: list = [key.bucket, int(start)]
        if end is not None:
            q += " AND epoch < ?"
            params.append(int(end))
        q += " ORDER BY epoch DESC LIMIT 1"
        res = con.execute(q, params).fetchone()
        if res is None:
            return None
        return CandleRecord(int(res[0]), *(float(v) for v in res[1:]))
    finally:
        con.close()


def read_range(db_path: Path, key: SeriesKey, start: int = 0, end: Optional[int] = None) -> pd.DataFrame:
    con = _connect(db_path)
    try:
        q = f"SELECT epoch, open, high, low, close, volume FROM {TABLE_NAME} WHERE bucket = ? AND epoch >= ?"
        params: list = [key.bucket, int(start)]
        if end is not None:
            q += " AND epoch < ?"
            params.append(int(end))
        df = con.execute(q + " ORDER BY epoch", params).fetch_df()
        return df.reset_index(drop=True)
    finally:
        con.close()


def coverage_stats(db_path: Path, bucket: str) -> Optional[tuple[pd.Timestamp, pd.Timestamp, int]]:
    con = _connect(db_path)
    try:
        q = f"SELECT MIN(epoch), MAX(epoch), COUNT(*) FROM {TABLE_NAME} WHERE bucket = ?"
        res = con.execute(q, [bucket]).fetchone()
        if res is None or res[0] is None:
            return None
        return pd.Timestamp(res[0], unit="s"), pd.Timestamp(res[1], unit="s"), int(res[2])
    finally:
        con.close()


def list_series(db_path: Path) -> List[str]:
    con = _connect(db_path)
    try:
        rows = con.execute(f"SELECT DISTINCT bucket FROM {TABLE_NAME} ORDER BY bucket").fetchall()
        return [r[0] for r in rows]
    finally:
        con.close()


@dataclass
class DuckDBStore:
    """Store capability backed by a DuckDB file."""

    path: Path

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        ensure_table(self.path)

    def write(self, key: SeriesKey, batch: pd.DataFrame) -> int:
        return write_batch(self.path, key, batch)

    def query_last(self, key: SeriesKey, start: int = 0, end: Optional[int] = None) -> Optional[CandleRecord]:
        return query_last(self.path, key, start, end)
