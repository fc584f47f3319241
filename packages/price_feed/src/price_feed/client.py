"""REST ticker client for Bybit market data.

Only public endpoints are used, so no API credentials are required.

Reference:
- Get Tickers: https://bybit-exchange.github.io/docs/v5/market/tickers
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from pybit.unified_trading import HTTP


logger = logging.getLogger(__name__)


class PriceFeedError(Exception):
    """Raised when the exchange cannot deliver a usable ticker."""


@dataclass
class BybitPriceClient:
    """Fetches spot tickers from Bybit.

    Example:
        client = BybitPriceClient()
        ticker = client.get_ticker("BTCUSDT")
        ticker["lastPrice"]  # "67842.50"
    """

    testnet: bool = False
    category: str = "spot"

    _session: Optional[HTTP] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        """Initialize HTTP session."""
        self._session = HTTP(testnet=self.testnet)

    def get_ticker(self, symbol: str) -> dict:
        """Fetch the 24h ticker of a symbol.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")

        Returns:
            Ticker dict with keys: symbol, lastPrice, highPrice24h,
            lowPrice24h, price24hPcnt, plus "time" (response timestamp in ms)

        Raises:
            PriceFeedError: If the API call fails or the symbol is unknown
        """
        logger.debug(f"Fetching ticker for {symbol}")

        response = self._session.get_tickers(category=self.category, symbol=symbol)

        self._check_response(response, "get_ticker")
        tickers = response.get("result", {}).get("list", [])
        if not tickers:
            raise PriceFeedError(f"No ticker returned for {symbol}")

        ticker = dict(tickers[0])
        ticker.setdefault("time", response.get("time"))
        return ticker

    def _check_response(self, response: dict, method: str) -> None:
        """Check API response for errors.

        Raises:
            PriceFeedError: If response indicates an error
        """
        ret_code = response.get("retCode", -1)
        if ret_code != 0:
            ret_msg = response.get("retMsg", "Unknown error")
            error_msg = f"Bybit API error in {method}: [{ret_code}] {ret_msg}"
            logger.error(error_msg)
            raise PriceFeedError(error_msg)
