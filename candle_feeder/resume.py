from __future__ import annotations

import logging
from typing import Optional

import duckdb  # type: ignore

from .errors import FeederError
from .models import SeriesKey, fmt_epoch


logger = logging.getLogger(__name__)


def last_stored_timestamp(store, key: SeriesKey) -> Optional[int]:
    """Epoch of the newest stored bar for ``key``, or None if there is none.

    The probe covers [0, unbounded) since the data's range is unknown. A
    failing probe means the same as an empty series: start from the
    configured or default start.
    """
    try:
        last = store.query_last(key, 0, None)
    except (duckdb.Error, FeederError) as e:
        logger.warning("resume probe for %s failed (%s); treating as empty", key.bucket, e)
        return None
    if last is None:
        logger.info("lastTimestamp for %s = none", key.bucket)
        return None
    logger.info("lastTimestamp for %s = %s", key.bucket, fmt_epoch(last.epoch))
    return last.epoch
