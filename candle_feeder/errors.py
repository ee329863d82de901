from __future__ import annotations

from typing import Optional, Sequence


class FeederError(Exception):
    """Base class for every error raised by the feeder."""


class InvalidTimeframe(FeederError, ValueError):
    """Timeframe text could not be parsed, or a provider cannot serve it."""

    def __init__(self, text: str, reason: str = "unrecognized timeframe") -> None:
        super().__init__(f"{reason}: {text!r}")
        self.text = text
        self.reason = reason


class ConfigError(FeederError):
    """Configuration that prevents constructing a usable worker."""


class ConversionError(FeederError):
    """One or more raw records carried a field that is not a number.

    Fatal to the current cycle: the batch is not written and the cursor
    stays where it was.
    """

    def __init__(self, message: str, failures: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.failures = list(failures)


class TransportError(FeederError):
    """The exchange call failed (network, HTTP status, provider error payload)."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitError(TransportError):
    """The exchange asked us to slow down (HTTP 429/418)."""

    def __init__(self, message: str, status: Optional[int] = None, retry_after: Optional[float] = None) -> None:
        super().__init__(message, status)
        self.retry_after = retry_after


class StoreWriteError(FeederError):
    """The store rejected or failed a batch write."""
