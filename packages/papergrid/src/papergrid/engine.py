"""
Paper trading strategy engines.

Each engine maps (config, state, price, balances) to a new state, the fills
executed this tick and the resulting balances. Engines perform no I/O: the
service layer loads inputs from the ledger and commits the Evaluation.

Engines never mutate the state they are given; they work on a copy and
report through `state_changed` whether the copy needs persisting.
"""

import copy
import hashlib
import logging
import random
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from papergrid.config import (
    BUY_DEDUP_TOLERANCE,
    MIN_BTC_BALANCE,
    MIN_USD_BALANCE,
    ConfigError,
    StrategyConfig,
    StrategyType,
)
from papergrid.fills import Fill, TradeSide, quantize_btc
from papergrid.grid import build_grid_levels, dip_level, locate_level, target_buy_price
from papergrid.portfolio import Balances
from papergrid.state import (
    ActiveOrder,
    BidirectionalGridState,
    GridOrder,
    NoState,
    SingleSideGridState,
    StrategyState,
)

logger = logging.getLogger(__name__)


@dataclass
class Evaluation:
    """Outcome of evaluating one strategy tick."""
    state: StrategyState
    balances: Balances
    fills: list[Fill] = field(default_factory=list)
    state_changed: bool = False

    @property
    def needs_commit(self) -> bool:
        """Whether anything has to be written back to the ledger."""
        return self.state_changed or bool(self.fills)


def _coerce(state: Optional[StrategyState], state_cls):
    """Return a private copy of state as state_cls, keeping unknown keys."""
    if isinstance(state, state_cls):
        return copy.deepcopy(state)
    if state is None:
        return state_cls()
    return state_cls.from_dict(state.to_dict())


class StrategyEngine:
    """Common interface of all strategy engines."""

    strategy_type: StrategyType

    def evaluate(
        self,
        config: StrategyConfig,
        state: Optional[StrategyState],
        price: Decimal,
        balances: Balances,
    ) -> Evaluation:
        raise NotImplementedError


class SingleSideGridEngine(StrategyEngine):
    """
    Buy-the-dip ladder with paired take-profit sells.

    The first tick anchors the grid at the current price. Afterwards every
    whole grid_interval the price drops below the anchor is a buy level; each
    level is bought at most once and the bought BTC is sold again once the
    price reaches the order's take-profit price.
    """

    strategy_type = StrategyType.SINGLE_SIDE_GRID

    def evaluate(self, config, state, price, balances) -> Evaluation:
        state = _coerce(state, SingleSideGridState)

        if not state.initialized:
            state.initial_price = price
            state.grid_orders = []
            logger.info('%s: Grid trading initialized at %s', config.strategy_id, price)
            return Evaluation(state=state, balances=balances, state_changed=True)

        try:
            config.check_interval()
        except ConfigError as e:
            logger.warning('%s: Grid trading skipped: %s', config.strategy_id, e)
            return Evaluation(state=state, balances=balances)

        fills: list[Fill] = []
        changed = False

        level = dip_level(state.initial_price, price, config.grid_interval)
        if level > 0:
            target = target_buy_price(state.initial_price, level, config.grid_interval)
            fill = self._try_buy(config, state, price, target, level, balances)
            if fill is not None:
                balances = balances.apply(fill)
                fills.append(fill)
                changed = True

        for order in state.grid_orders:
            if order.filled:
                continue
            if price >= order.sell_price and balances.btc >= order.btc_amount:
                fill = Fill.create(TradeSide.SELL, order.btc_amount, price)
                balances = balances.apply(fill)
                order.filled = True
                fills.append(fill)
                changed = True
                profit = fill.total - order.btc_amount * order.buy_price
                logger.info(
                    '%s: Grid trading SELL %s BTC at %s (profit %s)',
                    config.strategy_id, order.btc_amount, price, profit.quantize(Decimal('0.01')),
                )

        return Evaluation(state=state, balances=balances, fills=fills, state_changed=changed)

    def _try_buy(
        self,
        config: StrategyConfig,
        state: SingleSideGridState,
        price: Decimal,
        target: Decimal,
        level: int,
        balances: Balances,
    ) -> Optional[Fill]:
        """Buy at this dip level unless the level already holds an order."""
        if self._has_level_order(state, target):
            return None
        if price > target or balances.usd <= MIN_USD_BALANCE:
            return None

        usd_to_spend = balances.usd * config.trade_fraction
        btc_amount = quantize_btc(usd_to_spend / price)
        if btc_amount <= 0:
            return None

        sell_price = price * (1 + config.grid_profit_percent / 100)
        state.grid_orders.append(GridOrder(
            buy_price=price,
            sell_price=sell_price,
            btc_amount=btc_amount,
            grid_price=target,
        ))
        logger.info(
            '%s: Grid trading BUY %s BTC at %s (level %d), paired sell at %s',
            config.strategy_id, btc_amount, price, level, sell_price,
        )
        return Fill.create(TradeSide.BUY, btc_amount, price, grid_level=level)

    @staticmethod
    def _has_level_order(state: SingleSideGridState, target: Decimal) -> bool:
        return any(
            abs(order.level_price - target) < BUY_DEDUP_TOLERANCE
            for order in state.grid_orders
        )


class BidirectionalGridEngine(StrategyEngine):
    """
    Static price-bounded ladder with resting orders on both sides.

    Buy orders rest on every level below the current price and sell orders on
    every level above it. Order sizes reserve funds: a new buy is sized from
    the USD not yet committed to open buys, a new sell from the BTC not yet
    committed to open sells, so a single tick can never arm more than the
    portfolio holds.
    """

    strategy_type = StrategyType.BIDIRECTIONAL_GRID

    def evaluate(self, config, state, price, balances) -> Evaluation:
        state = _coerce(state, BidirectionalGridState)

        try:
            config.check_bounds()
            config.check_interval()
        except ConfigError as e:
            logger.warning('%s: Traditional grid skipped: %s', config.strategy_id, e)
            return Evaluation(state=state, balances=balances)

        if not state.initialized:
            state.grid_levels = build_grid_levels(
                config.grid_lower_bound, config.grid_upper_bound, config.grid_interval
            )
            state.active_orders = []
            logger.info(
                '%s: Traditional grid initialized: %d levels from %s to %s',
                config.strategy_id, len(state.grid_levels), config.grid_lower_bound, config.grid_upper_bound,
            )
            return Evaluation(state=state, balances=balances, state_changed=True)

        current = locate_level(state.grid_levels, price)
        if current is None:
            logger.info('%s: Traditional grid price %s is outside grid bounds', config.strategy_id, price)
            return Evaluation(state=state, balances=balances)

        changed = False
        if balances.usd > MIN_USD_BALANCE:
            for i in range(current):
                changed |= self._place_order(config, state, TradeSide.BUY, i, balances)
        if balances.btc > MIN_BTC_BALANCE:
            for i in range(current + 1, len(state.grid_levels)):
                changed |= self._place_order(config, state, TradeSide.SELL, i, balances)

        fills: list[Fill] = []
        for order in state.active_orders:
            if order.filled:
                continue
            crossed = (
                price <= order.price if order.side == TradeSide.BUY else price >= order.price
            )
            if not crossed:
                continue
            fill = Fill.create(
                order.side, order.btc_amount, order.price,
                grid_level=order.grid_level, order_id=order.order_id,
            )
            if not balances.can_afford(fill):
                continue
            balances = balances.apply(fill)
            order.filled = True
            self._refresh_level_flags(state, order.grid_level)
            fills.append(fill)
            changed = True
            logger.info(
                '%s: Traditional grid EXECUTED %s %s BTC at %s (level %d)',
                config.strategy_id, order.side.upper(), order.btc_amount, order.price, order.grid_level,
            )

        return Evaluation(state=state, balances=balances, fills=fills, state_changed=changed)

    def _place_order(
        self,
        config: StrategyConfig,
        state: BidirectionalGridState,
        side: TradeSide,
        level_index: int,
        balances: Balances,
    ) -> bool:
        """Rest a new order on the level unless one is already open there."""
        open_orders = [o for o in state.active_orders if not o.filled and o.side == side]
        if any(o.grid_level == level_index for o in open_orders):
            return False

        level = state.grid_levels[level_index]
        if side == TradeSide.BUY:
            reserved = sum((o.btc_amount * o.price for o in open_orders), Decimal('0'))
            available = balances.usd - reserved
            btc_amount = quantize_btc(available * config.trade_fraction / level.price)
        else:
            reserved = sum((o.btc_amount for o in open_orders), Decimal('0'))
            available = balances.btc - reserved
            btc_amount = quantize_btc(available * config.trade_fraction)
        if btc_amount <= 0:
            return False

        order_id = self._order_id(config.strategy_id, side, level_index, len(state.active_orders))
        state.active_orders.append(ActiveOrder(
            order_id=order_id,
            side=side,
            price=level.price,
            btc_amount=btc_amount,
            grid_level=level_index,
        ))
        if side == TradeSide.BUY:
            level.has_buy_order = True
        else:
            level.has_sell_order = True
        logger.info(
            '%s: Traditional grid placed %s order at %s (level %d)',
            config.strategy_id, side.upper(), level.price, level_index,
        )
        return True

    @staticmethod
    def _refresh_level_flags(state: BidirectionalGridState, level_index: int) -> None:
        open_orders = [o for o in state.active_orders if not o.filled and o.grid_level == level_index]
        level = state.grid_levels[level_index]
        level.has_buy_order = any(o.side == TradeSide.BUY for o in open_orders)
        level.has_sell_order = any(o.side == TradeSide.SELL for o in open_orders)

    @staticmethod
    def _order_id(strategy_id: str, side: TradeSide, level_index: int, sequence: int) -> str:
        id_string = f"{strategy_id}_{side}_{level_index}_{sequence}"
        return f"{side}-{level_index}-{hashlib.sha256(id_string.encode()).hexdigest()[:12]}"


class DefaultStrategyEngine(StrategyEngine):
    """
    Placeholder strategy: random buy/sell signals.

    Each signal fires with probability risk_tolerance / 200. Kept behind the
    common engine interface so a real signal generator can replace it.
    """

    strategy_type = StrategyType.DEFAULT

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def evaluate(self, config, state, price, balances) -> Evaluation:
        state = _coerce(state, NoState)
        probability = config.risk_tolerance / 200
        should_buy = self._rng.random() < probability
        should_sell = self._rng.random() < probability

        fill = None
        if should_buy and balances.usd > MIN_USD_BALANCE:
            btc_amount = quantize_btc(balances.usd * config.trade_fraction / price)
            if btc_amount > 0:
                fill = Fill.create(TradeSide.BUY, btc_amount, price)
        elif should_sell and balances.btc > MIN_BTC_BALANCE:
            btc_amount = quantize_btc(balances.btc * config.trade_fraction)
            if btc_amount > 0:
                fill = Fill.create(TradeSide.SELL, btc_amount, price)

        if fill is None:
            return Evaluation(state=state, balances=balances)

        logger.info('%s: Executed %s %s BTC at %s', config.strategy_id, fill.side.upper(), fill.amount, price)
        return Evaluation(state=state, balances=balances.apply(fill), fills=[fill])


def engine_for(strategy_type: StrategyType, rng: Optional[random.Random] = None) -> StrategyEngine:
    """Return the engine that evaluates strategy_type."""
    if strategy_type == StrategyType.SINGLE_SIDE_GRID:
        return SingleSideGridEngine()
    if strategy_type == StrategyType.BIDIRECTIONAL_GRID:
        return BidirectionalGridEngine()
    return DefaultStrategyEngine(rng)


def evaluate(
    config: StrategyConfig,
    state: Optional[StrategyState],
    price: Decimal,
    balances: Balances,
    rng: Optional[random.Random] = None,
) -> Evaluation:
    """Evaluate one tick with the engine selected by config.strategy_type."""
    return engine_for(config.strategy_type, rng).evaluate(config, state, price, balances)
