"""
Fill models for paper trading strategies.

A fill is the engine's record of a virtual trade it executed against the
simulated balance during a tick. The service layer turns every fill into
exactly one persisted transaction.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from enum import StrEnum
from typing import Optional


# BTC amounts are tracked in satoshi precision
BTC_QUANT = Decimal('0.00000001')
USD_QUANT = Decimal('0.00000001')


class TradeSide(StrEnum):
    """Direction of a trade."""
    BUY = "buy"
    SELL = "sell"


def quantize_btc(amount: Decimal) -> Decimal:
    """Round a BTC amount down to satoshi precision."""
    return amount.quantize(BTC_QUANT, rounding=ROUND_DOWN)


def quantize_usd(amount: Decimal) -> Decimal:
    """Round a USD amount down to ledger precision."""
    return amount.quantize(USD_QUANT, rounding=ROUND_DOWN)


@dataclass(frozen=True)
class Fill:
    """An executed virtual trade."""
    side: TradeSide
    amount: Decimal      # BTC
    price: Decimal       # USD per BTC
    total: Decimal       # USD, amount * price rounded down
    grid_level: Optional[int] = None
    order_id: Optional[str] = None

    @classmethod
    def create(
        cls,
        side: TradeSide,
        amount: Decimal,
        price: Decimal,
        grid_level: Optional[int] = None,
        order_id: Optional[str] = None,
    ) -> "Fill":
        """Build a fill whose total is derived from amount and price."""
        return cls(
            side=side,
            amount=amount,
            price=price,
            total=quantize_usd(amount * price),
            grid_level=grid_level,
            order_id=order_id,
        )
