"""Tests for the Ledger facade."""

from decimal import Decimal

import pytest

from papergrid import ConfigError, Fill, InsufficientBalanceError, StrategyType, TradeSide
from papergrid.state import SingleSideGridState

from ledger_db.ledger import NotFoundError, StaleStateError


def buy(amount, price):
    return Fill.create(TradeSide.BUY, Decimal(amount), Decimal(price))


def sell(amount, price):
    return Fill.create(TradeSide.SELL, Decimal(amount), Decimal(price))


class TestUsers:
    def test_get_or_create_is_idempotent(self, ledger):
        first = ledger.get_or_create_user("bob")
        second = ledger.get_or_create_user("bob")

        assert first.user_id == second.user_id


class TestPortfolio:
    def test_missing_portfolio(self, ledger, user):
        assert ledger.get_portfolio(user.user_id) is None

    def test_created_with_starting_balance(self, ledger, user):
        portfolio = ledger.get_or_create_portfolio(user.user_id)

        assert portfolio.usd_balance == Decimal("100000")
        assert portfolio.btc_balance == Decimal("0")
        assert ledger.get_portfolio(user.user_id).balances == portfolio.balances

    def test_unknown_user(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.get_or_create_portfolio("nobody")

    def test_update(self, ledger, user):
        ledger.update_portfolio(user.user_id, usd_balance=Decimal("500"), btc_balance=Decimal("1.5"))

        portfolio = ledger.get_portfolio(user.user_id)
        assert portfolio.usd_balance == Decimal("500")
        assert portfolio.btc_balance == Decimal("1.5")

    def test_update_rejects_negative(self, ledger, user):
        ledger.get_or_create_portfolio(user.user_id)
        with pytest.raises(ValueError):
            ledger.update_portfolio(user.user_id, usd_balance=Decimal("-1"))

        assert ledger.get_portfolio(user.user_id).usd_balance == Decimal("100000")


class TestStrategies:
    def test_create_defaults(self, ledger, user):
        strategy = ledger.create_strategy(user.user_id, "Coin flip")

        assert strategy.strategy_type == StrategyType.DEFAULT
        assert strategy.is_active is False
        assert strategy.trade_size == Decimal("25")
        assert strategy.state_version == 0
        assert strategy.strategy_state is None

    def test_create_grid(self, ledger, user):
        strategy = ledger.create_strategy(
            user.user_id, "Ladder",
            strategy_type="traditional-grid",
            grid_lower_bound=Decimal("60000"),
            grid_upper_bound=Decimal("66000"),
        )

        config = ledger.get_strategy(strategy.strategy_id).to_config()
        assert config.strategy_type == StrategyType.BIDIRECTIONAL_GRID
        assert config.grid_lower_bound == Decimal("60000")
        assert config.grid_interval == Decimal("2000")

    def test_unknown_type_runs_as_default(self, ledger, user):
        strategy = ledger.create_strategy(user.user_id, "Legacy", strategy_type="momentum")
        assert strategy.strategy_type == StrategyType.DEFAULT

    def test_create_rejects_bad_trade_size(self, ledger, user):
        with pytest.raises(ConfigError):
            ledger.create_strategy(user.user_id, "Greedy", trade_size=Decimal("150"))

        assert ledger.get_strategies(user.user_id) == []

    def test_create_rejects_unknown_field(self, ledger, user):
        with pytest.raises(TypeError):
            ledger.create_strategy(user.user_id, "x", leverage=10)

    def test_create_for_unknown_user(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.create_strategy("nobody", "x")

    def test_list_active(self, ledger, user):
        active = ledger.create_strategy(user.user_id, "on", is_active=True)
        ledger.create_strategy(user.user_id, "off")

        assert [s.strategy_id for s in ledger.list_active_strategies()] == [active.strategy_id]
        assert len(ledger.get_strategies(user.user_id)) == 2

    def test_update_config_keeps_version(self, ledger, user):
        strategy = ledger.create_strategy(user.user_id, "s")

        updated = ledger.update_strategy(strategy.strategy_id, is_active=True, grid_interval=Decimal("500"))

        assert updated.is_active is True
        assert updated.grid_interval == Decimal("500")
        assert updated.state_version == strategy.state_version

    def test_update_state_bumps_version(self, ledger, user):
        strategy = ledger.create_strategy(user.user_id, "s")

        updated = ledger.update_strategy(strategy.strategy_id, strategy_state={"initialPrice": "70000"})

        assert updated.state_version == strategy.state_version + 1
        assert updated.strategy_state == {"initialPrice": "70000"}

    def test_update_missing(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.update_strategy("missing", is_active=True)

    def test_reset_state(self, ledger, user):
        strategy = ledger.create_strategy(user.user_id, "s", strategy_type="grid-trading")
        ledger.update_strategy(strategy.strategy_id, strategy_state={"initialPrice": "70000", "gridOrders": []})

        reset = ledger.reset_strategy_state(strategy.strategy_id)

        assert reset.strategy_state is None
        assert isinstance(reset.load_state(), SingleSideGridState)
        assert not reset.load_state().initialized

    def test_delete(self, ledger, user):
        strategy = ledger.create_strategy(user.user_id, "s")

        assert ledger.delete_strategy(strategy.strategy_id) is True
        assert ledger.get_strategy(strategy.strategy_id) is None
        assert ledger.delete_strategy(strategy.strategy_id) is False


class TestTransactions:
    def test_create_and_list_newest_first(self, ledger, user):
        first = ledger.create_transaction(user.user_id, buy("0.1", "60000"))
        second = ledger.create_transaction(user.user_id, sell("0.1", "61000"))

        txs = ledger.get_transactions(user.user_id)

        assert [t.transaction_id for t in txs] == [second.transaction_id, first.transaction_id]
        assert txs[1].total == Decimal("6000")
        assert txs[1].status == "completed"
        assert txs[1].strategy_id is None

    def test_limit(self, ledger, user):
        for _ in range(3):
            ledger.create_transaction(user.user_id, buy("0.1", "60000"))

        assert len(ledger.get_transactions(user.user_id, limit=2)) == 2

    def test_record_trade_moves_balances(self, ledger, user):
        portfolio, tx = ledger.record_trade(user.user_id, buy("0.5", "60000"))

        assert portfolio.usd_balance == Decimal("70000")
        assert portfolio.btc_balance == Decimal("0.5")
        assert tx.side == "buy"

    def test_record_trade_rejects_overdraw(self, ledger, user):
        with pytest.raises(InsufficientBalanceError):
            ledger.record_trade(user.user_id, sell("1", "60000"))

        assert ledger.get_transactions(user.user_id) == []
        assert ledger.get_portfolio(user.user_id) is None


class TestCommitTick:
    """Atomic persistence of a strategy tick."""

    @pytest.fixture
    def strategy(self, ledger, user):
        ledger.get_or_create_portfolio(user.user_id)
        return ledger.create_strategy(user.user_id, "grid", strategy_type="grid-trading", is_active=True)

    def test_writes_everything(self, ledger, user, strategy):
        state = {"initialPrice": "70000", "gridOrders": []}
        fills = [buy("0.5", "60000"), sell("0.25", "62000")]

        result = ledger.commit_tick(strategy.strategy_id, strategy.state_version, fills, state)

        assert result.state_version == strategy.state_version + 1
        assert result.portfolio.usd_balance == Decimal("85500")
        assert result.portfolio.btc_balance == Decimal("0.25")
        assert [t.side for t in result.transactions] == ["buy", "sell"]
        assert all(t.strategy_id == strategy.strategy_id for t in result.transactions)

        reloaded = ledger.get_strategy(strategy.strategy_id)
        assert reloaded.strategy_state == state
        assert reloaded.state_version == result.state_version
        newest_first = ledger.get_transactions(user.user_id)
        assert [t.side for t in newest_first] == ["sell", "buy"]

    def test_transaction_totals_match_balance_change(self, ledger, user, strategy):
        fills = [buy("0.36764705", "68000")]

        result = ledger.commit_tick(strategy.strategy_id, 0, fills)

        tx = result.transactions[0]
        assert tx.total == Fill.create(TradeSide.BUY, tx.amount, tx.price).total
        assert result.portfolio.usd_balance == Decimal("100000") - tx.total

    def test_state_only(self, ledger, strategy):
        result = ledger.commit_tick(strategy.strategy_id, 0, [], {"initialPrice": "70000", "gridOrders": []})

        assert result.transactions == []
        assert result.portfolio.usd_balance == Decimal("100000")

    def test_stale_version_rejected(self, ledger, user, strategy):
        ledger.commit_tick(strategy.strategy_id, 0, [], {"initialPrice": "70000", "gridOrders": []})

        with pytest.raises(StaleStateError):
            ledger.commit_tick(strategy.strategy_id, 0, [buy("0.1", "60000")], {"initialPrice": "1"})

        assert ledger.get_strategy(strategy.strategy_id).strategy_state == {"initialPrice": "70000", "gridOrders": []}
        assert ledger.get_transactions(user.user_id) == []

    def test_failing_fill_rolls_back_whole_tick(self, ledger, user, strategy):
        """An overdrawing fill leaves balances, transactions and state untouched."""
        fills = [buy("0.5", "60000"), buy("5", "60000")]

        with pytest.raises(InsufficientBalanceError):
            ledger.commit_tick(strategy.strategy_id, 0, fills, {"initialPrice": "70000", "gridOrders": []})

        assert ledger.get_portfolio(user.user_id).usd_balance == Decimal("100000")
        assert ledger.get_transactions(user.user_id) == []
        reloaded = ledger.get_strategy(strategy.strategy_id)
        assert reloaded.strategy_state is None
        assert reloaded.state_version == 0

    def test_applies_to_current_balances(self, ledger, user, strategy):
        """Fills land on top of trades recorded after the tick read its inputs."""
        ledger.record_trade(user.user_id, buy("1", "50000"))

        result = ledger.commit_tick(strategy.strategy_id, 0, [buy("0.5", "60000")])

        assert result.portfolio.usd_balance == Decimal("20000")
        assert result.portfolio.btc_balance == Decimal("1.5")

    def test_deleted_strategy(self, ledger, strategy):
        ledger.delete_strategy(strategy.strategy_id)

        with pytest.raises(NotFoundError):
            ledger.commit_tick(strategy.strategy_id, 0, [])
