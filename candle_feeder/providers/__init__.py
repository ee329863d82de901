"""Exchange adapters implementing the candle/symbol capability.

Each adapter turns the exchange's wire rows into RawCandle values; parsing
and everything after it is shared.
"""

from typing import Dict, Type

from ..errors import ConfigError
from .base import ExchangeProvider
from .binance import BinanceProvider
from .bitfinex import BitfinexProvider
from .gdax import GdaxProvider


PROVIDERS: Dict[str, Type[ExchangeProvider]] = {
    BinanceProvider.name: BinanceProvider,
    BitfinexProvider.name: BitfinexProvider,
    GdaxProvider.name: GdaxProvider,
}


def get_provider(name: str, **kwargs) -> ExchangeProvider:
    try:
        cls = PROVIDERS[name.lower()]
    except KeyError:
        raise ConfigError(f"unknown provider {name!r}; expected one of {sorted(PROVIDERS)}") from None
    return cls(**kwargs)


__all__ = [
    "ExchangeProvider",
    "BinanceProvider",
    "BitfinexProvider",
    "GdaxProvider",
    "PROVIDERS",
    "get_provider",
]
