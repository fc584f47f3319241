"""Helpers shared by integration tests."""

import asyncio
import time


def make_ticker(price, pcnt="0.01"):
    """Bybit spot ticker item quoting the given last price."""
    return {
        "symbol": "BTCUSDT",
        "lastPrice": str(price),
        "highPrice24h": str(price),
        "lowPrice24h": str(price),
        "price24hPcnt": pcnt,
        "time": int(time.time() * 1000),
    }


def move_market(exchange, price_service, price):
    """Quote a new price and refresh the cached reading."""
    exchange.get_ticker.return_value = make_ticker(price)
    return price_service.fetch_price()


async def wait_until(predicate, timeout=5.0, interval=0.02):
    """Poll predicate (run in a worker thread) until it is truthy."""
    deadline = time.monotonic() + timeout
    while True:
        result = await asyncio.to_thread(predicate)
        if result:
            return result
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(interval)
