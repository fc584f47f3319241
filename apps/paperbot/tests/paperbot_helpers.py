"""Helpers shared by paperbot tests."""

from datetime import datetime, UTC
from decimal import Decimal

from papergrid import PriceReading


def make_reading(price) -> PriceReading:
    return PriceReading(
        price=Decimal(str(price)),
        change_24h=Decimal("0"),
        high_24h=Decimal(str(price)),
        low_24h=Decimal(str(price)),
        timestamp=datetime.now(UTC),
    )
