"""Caching BTC price service.

PriceService keeps the latest PriceReading in memory. Strategy ticks read the
cache; a background task refreshes it from the exchange at a fixed interval.
"""

import asyncio
import logging
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional

from papergrid.events import PriceReading
from papergrid.stats import FALLBACK_PRICE

from price_feed.client import BybitPriceClient
from price_feed.normalizer import normalize_ticker


logger = logging.getLogger(__name__)


# Served when the exchange is unreachable and nothing has been cached yet
FALLBACK_READING = PriceReading(
    price=FALLBACK_PRICE,
    change_24h=Decimal('3.25'),
    high_24h=Decimal('68420'),
    low_24h=Decimal('66100'),
    timestamp=datetime.fromtimestamp(0, tz=UTC),
)


class PriceService:
    """Latest BTC price with fallback and periodic refresh.

    Example:
        service = PriceService(BybitPriceClient())
        await service.start(interval=60)
        reading = service.get_current_price()
        await service.stop()
    """

    def __init__(self, client: BybitPriceClient, symbol: str = "BTCUSDT"):
        self._client = client
        self._symbol = symbol
        self._current: Optional[PriceReading] = None
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def get_current_price(self) -> Optional[PriceReading]:
        """Return the cached reading, or None before the first successful fetch."""
        return self._current

    def fetch_price(self) -> PriceReading:
        """Refresh the cached reading from the exchange.

        Never raises: on failure the error is logged and the cached reading
        is returned, or FALLBACK_READING when nothing is cached. The fallback
        is not stored, so get_current_price keeps reporting None.
        """
        try:
            reading = normalize_ticker(self._client.get_ticker(self._symbol))
        except Exception as e:
            logger.error(f"Error fetching BTC price: {e}")
            return self._current or FALLBACK_READING

        self._current = reading
        logger.debug(f"BTC price updated: {reading.price} ({reading.change_24h:+.2f}%)")
        return reading

    async def start(self, interval: float = 60) -> None:
        """Start refreshing the price in the background."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self.run_updates(interval))
        logger.info(f"Price updates started for {self._symbol} every {interval}s")

    async def stop(self) -> None:
        """Stop the background refresh."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run_updates(self, interval: float = 60) -> None:
        """Refresh immediately, then every interval seconds until stopped."""
        self._running = True
        while self._running:
            try:
                await asyncio.to_thread(self.fetch_price)
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in price update loop: {e}")
                await asyncio.sleep(interval)
