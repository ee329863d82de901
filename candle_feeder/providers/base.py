from __future__ import annotations

import http.client
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Sequence
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from ..errors import RateLimitError, TransportError
from ..models import RawCandle
from ..timeframe import Timeframe


logger = logging.getLogger(__name__)

USER_AGENT = "candle-feeder/1.0"
DEFAULT_TIMEOUT = 15.0
RATE_LIMIT_STATUSES = (418, 429)


def http_get_json(url: str, params: Optional[Mapping[str, Any]] = None, timeout: float = DEFAULT_TIMEOUT) -> Any:
    """GET ``url`` and decode the JSON body, mapping every failure to TransportError."""
    if params:
        url = f"{url}?{urlencode(params)}"
    req = Request(url, headers={"User-Agent": USER_AGENT, "Accept": "application/json"})
    try:
        with urlopen(req, timeout=timeout) as resp:
            body = resp.read()
    except HTTPError as e:
        if e.code in RATE_LIMIT_STATUSES:
            retry_after = e.headers.get("Retry-After") if e.headers else None
            raise RateLimitError(
                f"rate limited by {url} (HTTP {e.code})",
                status=e.code,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            ) from e
        raise TransportError(f"HTTP {e.code} from {url}", status=e.code) from e
    except (OSError, http.client.HTTPException) as e:
        # URLError and socket timeouts are OSErrors; a truncated body raises IncompleteRead
        raise TransportError(f"request to {url} failed: {e}") from e
    try:
        return json.loads(body)
    except ValueError as e:
        raise TransportError(f"undecodable response from {url}: {e}") from e


class ExchangeProvider(ABC):
    """Capability the worker needs from an exchange: candles and a symbol list."""

    name: str = ""
    fallback_symbols: Sequence[str] = ()

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    @abstractmethod
    def interval(self, timeframe: Timeframe) -> str:
        """Provider spelling of ``timeframe``; raises InvalidTimeframe if unsupported."""

    @abstractmethod
    def fetch_candles(self, symbol: str, timeframe: str, start_ms: int, end_ms: int) -> List[RawCandle]:
        """Raw candles opening in [start_ms, end_ms); raises TransportError."""

    @abstractmethod
    def fetch_symbols(self) -> List[str]:
        """Currently tradable symbols; raises TransportError."""

    def list_tradable_symbols(self) -> List[str]:
        try:
            symbols = self.fetch_symbols()
        except TransportError as e:
            logger.warning("%s: symbol discovery failed (%s); using fallback list", self.name, e)
            return list(self.fallback_symbols)
        if not symbols:
            logger.warning("%s: symbol discovery returned nothing; using fallback list", self.name)
            return list(self.fallback_symbols)
        return symbols

    def _get(self, url: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return http_get_json(url, params, timeout=self.timeout)


def candle_rows(payload: Any, width: int, source: str) -> List[list]:
    """Check that ``payload`` is a list of rows with at least ``width`` columns."""
    if not isinstance(payload, list):
        raise TransportError(f"{source}: expected a list of candles, got {type(payload).__name__}")
    for row in payload:
        if not isinstance(row, (list, tuple)) or len(row) < width:
            raise TransportError(f"{source}: malformed candle row {row!r}")
    return payload
