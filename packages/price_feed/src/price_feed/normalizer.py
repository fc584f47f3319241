"""Convert Bybit ticker payloads to PriceReading objects.

Bybit spot ticker format (REST get_tickers, one list item):
{
    "symbol": "BTCUSDT",
    "lastPrice": "67842.50",
    "highPrice24h": "68420.00",
    "lowPrice24h": "66100.00",
    "price24hPcnt": "0.0325"
}

price24hPcnt is a fraction; PriceReading.change_24h is a percentage.
"""

from datetime import datetime, UTC
from decimal import Decimal, InvalidOperation
from typing import Optional

from papergrid.events import PriceReading

from price_feed.client import PriceFeedError


def normalize_ticker(item: dict, now: Optional[datetime] = None) -> PriceReading:
    """Convert a Bybit ticker item to a PriceReading.

    Args:
        item: Ticker dict as returned by BybitPriceClient.get_ticker
        now: Timestamp to use when the payload carries none

    Returns:
        PriceReading

    Raises:
        PriceFeedError: If a required field is missing or not numeric
    """
    try:
        price = Decimal(item["lastPrice"])
        change = Decimal(item.get("price24hPcnt") or "0") * 100
        high = Decimal(item.get("highPrice24h") or item["lastPrice"])
        low = Decimal(item.get("lowPrice24h") or item["lastPrice"])
    except (KeyError, TypeError, InvalidOperation) as e:
        raise PriceFeedError(f"Malformed ticker payload: {item!r}") from e

    if price <= 0:
        raise PriceFeedError(f"Non-positive price in ticker: {price}")

    ts_ms = item.get("time")
    if ts_ms:
        timestamp = datetime.fromtimestamp(int(ts_ms) / 1000, tz=UTC)
    else:
        timestamp = now or datetime.now(UTC)

    return PriceReading(
        price=price,
        change_24h=change,
        high_24h=high,
        low_24h=low,
        timestamp=timestamp,
    )
