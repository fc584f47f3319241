"""
Simulated portfolio balances.

Balances are immutable; applying a fill returns a new instance so an engine
can evolve balances fill by fill within a tick and hand the final value back
to the service layer.
"""

from dataclasses import dataclass, replace
from decimal import Decimal

from papergrid.fills import Fill, TradeSide


class InsufficientBalanceError(ValueError):
    """Raised when a fill would drive a balance below zero."""


@dataclass(frozen=True)
class Balances:
    """USD and BTC holdings of a paper portfolio."""
    usd: Decimal
    btc: Decimal

    def __post_init__(self):
        if self.usd < 0 or self.btc < 0:
            raise InsufficientBalanceError(f"negative balance: usd={self.usd}, btc={self.btc}")

    def can_afford(self, fill: Fill) -> bool:
        """Whether applying the fill keeps both balances non-negative."""
        if fill.side == TradeSide.BUY:
            return self.usd >= fill.total
        return self.btc >= fill.amount

    def apply(self, fill: Fill) -> "Balances":
        """
        Return balances after the fill.

        Buys move `total` USD into `amount` BTC, sells the inverse.

        Raises:
            InsufficientBalanceError: If the fill would overdraw either balance
        """
        if not self.can_afford(fill):
            raise InsufficientBalanceError(
                f"cannot {fill.side} {fill.amount} BTC at {fill.price}: usd={self.usd}, btc={self.btc}"
            )
        if fill.side == TradeSide.BUY:
            return replace(self, usd=self.usd - fill.total, btc=self.btc + fill.amount)
        return replace(self, usd=self.usd + fill.total, btc=self.btc - fill.amount)

    def value(self, price: Decimal) -> Decimal:
        """Portfolio value in USD at the given BTC price."""
        return self.usd + self.btc * price
