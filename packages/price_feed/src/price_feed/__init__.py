"""BTC price source for the paper trading bot.

This package provides:
- REST ticker client backed by pybit
- Normalization of Bybit ticker payloads to PriceReading
- Caching price service with a fallback reading and periodic refresh
"""

from price_feed.client import BybitPriceClient, PriceFeedError
from price_feed.normalizer import normalize_ticker
from price_feed.service import PriceService, FALLBACK_READING

__all__ = [
    "BybitPriceClient",
    "PriceFeedError",
    "normalize_ticker",
    "PriceService",
    "FALLBACK_READING",
]
