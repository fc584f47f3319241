"""
Normalized market data consumed by the strategy engines.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class PriceReading:
    """
    Latest known BTC/USD price with its 24h context.

    change_24h is a percentage (3.25 means +3.25%).
    """
    price: Decimal
    change_24h: Decimal
    high_24h: Decimal
    low_24h: Decimal
    timestamp: datetime
