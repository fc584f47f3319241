"""Tests for StrategyRunner."""

from decimal import Decimal
from unittest.mock import patch

import pytest

from papergrid import InsufficientBalanceError, TradeSide
from ledger_db import StaleStateError

from paperbot.runner import StrategyRunner, TickStatus

from paperbot_helpers import make_reading


class _SequenceRandom:
    def __init__(self, values):
        self._values = list(values)

    def random(self):
        return self._values.pop(0)


@pytest.fixture
def grid(ledger, user):
    ledger.get_or_create_portfolio(user.user_id)
    return ledger.create_strategy(user.user_id, "dip", strategy_type="grid-trading", is_active=True)


@pytest.fixture
def runner(ledger, prices):
    return StrategyRunner(ledger, prices)


class TestRunTickGuards:
    def test_missing_strategy_stops(self, runner):
        assert runner.run_tick("missing").status == TickStatus.STOPPED

    def test_inactive_strategy_stops(self, runner, ledger, grid):
        ledger.update_strategy(grid.strategy_id, is_active=False)

        assert runner.run_tick(grid.strategy_id).status == TickStatus.STOPPED

    def test_no_price(self, runner, prices, grid):
        prices.get_current_price.return_value = None

        assert runner.run_tick(grid.strategy_id).status == TickStatus.NO_PRICE

    def test_no_portfolio(self, runner, ledger):
        owner = ledger.create_user("no-wallet")
        strategy = ledger.create_strategy(owner.user_id, "s", strategy_type="grid-trading", is_active=True)

        assert runner.run_tick(strategy.strategy_id).status == TickStatus.NO_PORTFOLIO


class TestSingleSideTicks:
    def test_first_tick_persists_anchor(self, runner, ledger, grid):
        result = runner.run_tick(grid.strategy_id)

        assert result.status == TickStatus.COMMITTED
        assert result.fills == []
        stored = ledger.get_strategy(grid.strategy_id)
        assert stored.strategy_state["initialPrice"] == "70000"
        assert stored.state_version == result.state_version == 1

    def test_unchanged_tick_is_idle(self, runner, ledger, grid):
        runner.run_tick(grid.strategy_id)

        result = runner.run_tick(grid.strategy_id)

        assert result.status == TickStatus.IDLE
        assert ledger.get_strategy(grid.strategy_id).state_version == 1

    def test_dip_buys_and_records_transaction(self, runner, ledger, prices, user, grid):
        runner.run_tick(grid.strategy_id)
        prices.get_current_price.return_value = make_reading(68000)

        result = runner.run_tick(grid.strategy_id)

        assert result.status == TickStatus.COMMITTED
        assert [f.side for f in result.fills] == [TradeSide.BUY]
        txs = ledger.get_transactions(user.user_id)
        assert len(txs) == 1
        assert txs[0].strategy_id == grid.strategy_id
        assert txs[0].amount == result.fills[0].amount
        portfolio = ledger.get_portfolio(user.user_id)
        assert portfolio.usd_balance == Decimal("100000") - txs[0].total
        assert portfolio.btc_balance == txs[0].amount

    def test_repeated_dip_ticks_buy_once(self, runner, ledger, prices, user, grid):
        runner.run_tick(grid.strategy_id)
        for price in (67900, 67800, 67700):
            prices.get_current_price.return_value = make_reading(price)
            runner.run_tick(grid.strategy_id)

        assert len(ledger.get_transactions(user.user_id)) == 1
        orders = ledger.get_strategy(grid.strategy_id).strategy_state["gridOrders"]
        assert len(orders) == 1

    def test_state_survives_deactivation(self, runner, ledger, prices, grid):
        runner.run_tick(grid.strategy_id)
        ledger.update_strategy(grid.strategy_id, is_active=False)
        ledger.update_strategy(grid.strategy_id, is_active=True)
        prices.get_current_price.return_value = make_reading(80000)

        result = runner.run_tick(grid.strategy_id)

        assert result.status == TickStatus.IDLE
        assert ledger.get_strategy(grid.strategy_id).strategy_state["initialPrice"] == "70000"


class TestBidirectionalTicks:
    def test_ladder_then_orders(self, runner, ledger, user):
        ledger.get_or_create_portfolio(user.user_id)
        strategy = ledger.create_strategy(
            user.user_id, "ladder", strategy_type="traditional-grid", is_active=True,
            grid_lower_bound=Decimal("60000"), grid_upper_bound=Decimal("80000"),
        )

        runner.run_tick(strategy.strategy_id)
        runner.run_tick(strategy.strategy_id)

        state = ledger.get_strategy(strategy.strategy_id).strategy_state
        assert len(state["gridLevels"]) == 11
        assert {o["type"] for o in state["activeOrders"]} == {"buy"}
        assert len(state["activeOrders"]) == 5


class TestDefaultTicks:
    def test_coin_flip_buy(self, ledger, prices, user):
        ledger.get_or_create_portfolio(user.user_id)
        strategy = ledger.create_strategy(user.user_id, "flip", is_active=True)
        runner = StrategyRunner(ledger, prices, rng=_SequenceRandom([0.0, 0.9]))

        result = runner.run_tick(strategy.strategy_id)

        assert result.status == TickStatus.COMMITTED
        assert result.fills[0].side == TradeSide.BUY
        assert ledger.get_strategy(strategy.strategy_id).strategy_state is None


class TestCommitConflicts:
    def test_stale_state_discarded(self, runner, ledger, grid):
        with patch.object(ledger, "commit_tick", side_effect=StaleStateError("moved")):
            result = runner.run_tick(grid.strategy_id)

        assert result.status == TickStatus.STALE

    def test_overdraw_discarded(self, runner, ledger, grid):
        with patch.object(ledger, "commit_tick", side_effect=InsufficientBalanceError("drained")):
            result = runner.run_tick(grid.strategy_id)

        assert result.status == TickStatus.REJECTED

    def test_other_errors_propagate(self, runner, ledger, grid):
        with patch.object(ledger, "commit_tick", side_effect=RuntimeError("db down")):
            with pytest.raises(RuntimeError):
                runner.run_tick(grid.strategy_id)
