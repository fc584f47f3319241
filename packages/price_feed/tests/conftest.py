"""Test fixtures for price_feed tests."""

import pytest


@pytest.fixture
def sample_ticker():
    """Sample Bybit spot ticker list item."""
    return {
        "symbol": "BTCUSDT",
        "lastPrice": "67842.50",
        "highPrice24h": "68420.00",
        "lowPrice24h": "66100.00",
        "price24hPcnt": "0.0325",
        "time": 1704639600000,
    }


@pytest.fixture
def ok_response():
    """Build a successful get_tickers response."""
    def _build(items):
        return {"retCode": 0, "retMsg": "OK", "result": {"category": "spot", "list": items}, "time": 1704639600123}
    return _build
