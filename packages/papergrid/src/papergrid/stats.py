"""
Portfolio statistics for paper trading.

All functions are pure: they take balances, executed transactions and the
current price and compute dashboard figures without touching storage.
"""

from dataclasses import dataclass
from datetime import datetime, time, UTC
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from papergrid.fills import TradeSide


STARTING_BALANCE = Decimal('100000')

# Price used for valuation before the price feed has produced a reading
FALLBACK_PRICE = Decimal('67842.50')

NO_ACTIVE_STRATEGY = 'No active strategy'


class TradeRecord(Protocol):
    """Minimal view of an executed transaction."""
    side: str
    price: Decimal
    total: Decimal
    timestamp: datetime


class StrategyRecord(Protocol):
    """Minimal view of a stored strategy."""
    name: str
    is_active: bool


@dataclass(frozen=True)
class PortfolioStats:
    """Dashboard summary of a paper portfolio."""
    total_value: Decimal
    total_pl: Decimal
    today_pl: Decimal
    trades_today: int
    total_trades: int
    success_rate: int  # percent
    is_active: bool
    strategy_name: str
    active_positions: int  # 1 while any BTC is held


def count_successful_round_trips(transactions: Sequence[TradeRecord]) -> int:
    """
    Count buys immediately followed by a sell at a higher price.

    Transactions are compared in chronological order.
    """
    ordered = sorted(transactions, key=lambda t: _as_utc(t.timestamp))
    successes = 0
    for current, following in zip(ordered, ordered[1:]):
        if (
            current.side == TradeSide.BUY
            and following.side == TradeSide.SELL
            and following.price > current.price
        ):
            successes += 1
    return successes


def calc_success_rate(transactions: Sequence[TradeRecord]) -> int:
    """
    Percentage of round trips that were profitable.

    Every two transactions count as one round trip. Fewer than two
    transactions yield 0.
    """
    total = len(transactions)
    if total <= 1:
        return 0
    successes = count_successful_round_trips(transactions)
    return round(successes / (total / 2) * 100)


def calc_today_pl(transactions: Sequence[TradeRecord], now: datetime) -> Decimal:
    """Cash flow of today's trades: sell totals minus buy totals since UTC midnight."""
    day_start = datetime.combine(now.astimezone(UTC).date(), time.min, tzinfo=UTC)
    pl = Decimal('0')
    for tx in transactions:
        if _as_utc(tx.timestamp) < day_start:
            continue
        pl += tx.total if tx.side == TradeSide.SELL else -tx.total
    return pl


def compute_portfolio_stats(
    usd_balance: Decimal,
    btc_balance: Decimal,
    transactions: Sequence[TradeRecord],
    current_price: Optional[Decimal],
    now: datetime,
    starting_balance: Decimal = STARTING_BALANCE,
    strategies: Sequence[StrategyRecord] = (),
) -> PortfolioStats:
    """
    Summarize a portfolio for display.

    Args:
        usd_balance: Current USD balance
        btc_balance: Current BTC balance
        transactions: All executed transactions of the portfolio owner
        current_price: Latest BTC price, or None before the first reading
        now: Reference time for "today"
        starting_balance: Paper money the portfolio started with
        strategies: The owner's strategies; the first active one is reported

    Returns:
        PortfolioStats
    """
    price = current_price if current_price is not None else FALLBACK_PRICE
    total_value = usd_balance + btc_balance * price
    active = next((s for s in strategies if s.is_active), None)
    day_start = datetime.combine(now.astimezone(UTC).date(), time.min, tzinfo=UTC)
    return PortfolioStats(
        total_value=total_value,
        total_pl=total_value - starting_balance,
        today_pl=calc_today_pl(transactions, now),
        trades_today=sum(1 for tx in transactions if _as_utc(tx.timestamp) >= day_start),
        total_trades=len(transactions),
        success_rate=calc_success_rate(transactions),
        is_active=active is not None,
        strategy_name=active.name if active is not None else NO_ACTIVE_STRATEGY,
        active_positions=1 if btc_balance > 0 else 0,
    )


def _as_utc(ts: datetime) -> datetime:
    # SQLite returns naive datetimes for timezone-aware columns
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)
