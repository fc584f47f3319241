"""
Tests for portfolio statistics.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from decimal import Decimal

from papergrid.stats import (
    FALLBACK_PRICE,
    NO_ACTIVE_STRATEGY,
    calc_success_rate,
    calc_today_pl,
    compute_portfolio_stats,
    count_successful_round_trips,
)


NOW = datetime(2024, 5, 10, 15, 30, tzinfo=UTC)


@dataclass
class Tx:
    side: str
    price: Decimal
    total: Decimal
    timestamp: datetime


@dataclass
class Strategy:
    name: str
    is_active: bool


def tx(side, price, total='0', minutes_ago=0):
    return Tx(side, Decimal(price), Decimal(total), NOW - timedelta(minutes=minutes_ago))


class TestSuccessRate:
    """Tests for round trip success counting."""

    def test_no_transactions(self):
        assert calc_success_rate([]) == 0

    def test_single_transaction(self):
        assert calc_success_rate([tx('buy', '60000')]) == 0

    def test_profitable_round_trip(self):
        txs = [tx('buy', '60000', minutes_ago=10), tx('sell', '61000', minutes_ago=5)]
        assert calc_success_rate(txs) == 100

    def test_half_successful(self):
        """Only a buy directly followed by a higher sell counts."""
        txs = [
            tx('buy', '60000', minutes_ago=40),
            tx('sell', '61000', minutes_ago=30),
            tx('buy', '62000', minutes_ago=20),
            tx('sell', '61500', minutes_ago=10),
        ]
        assert count_successful_round_trips(txs) == 1
        assert calc_success_rate(txs) == 50

    def test_order_independent_of_input(self):
        """Transactions are compared chronologically whatever the input order."""
        txs = [tx('sell', '61000', minutes_ago=5), tx('buy', '60000', minutes_ago=10)]
        assert count_successful_round_trips(txs) == 1


class TestTodayPl:
    """Tests for today's cash flow."""

    def test_counts_only_today(self):
        txs = [
            tx('sell', '61000', total='1000', minutes_ago=10),
            tx('buy', '60000', total='400', minutes_ago=20),
            tx('sell', '61000', total='5000', minutes_ago=60 * 24),
        ]
        assert calc_today_pl(txs, NOW) == Decimal('600')

    def test_naive_timestamps_are_utc(self):
        naive = Tx('sell', Decimal('1'), Decimal('50'), datetime(2024, 5, 10, 0, 1))
        assert calc_today_pl([naive], NOW) == Decimal('50')


class TestComputePortfolioStats:
    """Tests for the dashboard summary."""

    def test_values_at_current_price(self):
        txs = [
            tx('buy', '60000', total='30000', minutes_ago=20),
            tx('sell', '62000', total='6200', minutes_ago=10),
        ]
        stats = compute_portfolio_stats(
            Decimal('50000'), Decimal('1'), txs, Decimal('60000'), NOW,
        )

        assert stats.total_value == Decimal('110000')
        assert stats.total_pl == Decimal('10000')
        assert stats.today_pl == Decimal('-23800')
        assert stats.trades_today == 2
        assert stats.total_trades == 2
        assert stats.success_rate == 100

    def test_fallback_price(self):
        """Without a reading the portfolio is valued at the fallback price."""
        stats = compute_portfolio_stats(Decimal('0'), Decimal('1'), [], None, NOW)

        assert stats.total_value == FALLBACK_PRICE
        assert stats.total_trades == 0
        assert stats.success_rate == 0

    def test_reports_first_active_strategy(self):
        strategies = [
            Strategy('dip', False),
            Strategy('ladder', True),
            Strategy('momentum', True),
        ]
        stats = compute_portfolio_stats(
            Decimal('40000'), Decimal('0.5'), [], Decimal('60000'), NOW, strategies=strategies,
        )

        assert stats.is_active is True
        assert stats.strategy_name == 'ladder'
        assert stats.active_positions == 1

    def test_no_active_strategy(self):
        stats = compute_portfolio_stats(
            Decimal('100000'), Decimal('0'), [], Decimal('60000'), NOW, strategies=[Strategy('dip', False)],
        )

        assert stats.is_active is False
        assert stats.strategy_name == NO_ACTIVE_STRATEGY
        assert stats.active_positions == 0
