"""Single strategy tick: load, evaluate, commit.

StrategyRunner is synchronous and does blocking database I/O; the scheduler
runs it in a worker thread. One call evaluates one strategy against the
latest cached price and persists the outcome atomically through the ledger.
"""

import logging
import random
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional

from papergrid import Fill, InsufficientBalanceError, dump_state, engine_for
from ledger_db import Ledger, StaleStateError
from price_feed import PriceService

logger = logging.getLogger(__name__)


class TickStatus(StrEnum):
    """Outcome of one tick."""
    STOPPED = "stopped"            # strategy deleted or deactivated, loop should end
    NO_PRICE = "no_price"          # no price reading yet
    NO_PORTFOLIO = "no_portfolio"  # owner has no portfolio
    IDLE = "idle"                  # nothing to persist
    COMMITTED = "committed"        # fills and/or state written
    STALE = "stale"                # state changed underneath the tick, discarded
    REJECTED = "rejected"          # a fill no longer fits the portfolio, discarded


@dataclass
class TickResult:
    strategy_id: str
    status: TickStatus
    fills: list[Fill] = field(default_factory=list)
    state_version: Optional[int] = None


class StrategyRunner:
    """Evaluates one tick of a strategy.

    Example:
        runner = StrategyRunner(ledger, price_service)
        result = runner.run_tick(strategy_id)
        if result.status == TickStatus.STOPPED:
            ...
    """

    def __init__(
        self,
        ledger: Ledger,
        price_service: PriceService,
        rng: Optional[random.Random] = None,
    ):
        self._ledger = ledger
        self._prices = price_service
        self._rng = rng

    def run_tick(self, strategy_id: str) -> TickResult:
        """Run one tick of a strategy.

        Returns:
            TickResult; errors other than a stale state or an overdrawn
            portfolio propagate to the caller.
        """
        strategy = self._ledger.get_strategy(strategy_id)
        if strategy is None or not strategy.is_active:
            return TickResult(strategy_id, TickStatus.STOPPED)

        reading = self._prices.get_current_price()
        if reading is None:
            logger.debug(f"{strategy_id}: No price available, skipping tick")
            return TickResult(strategy_id, TickStatus.NO_PRICE)

        portfolio = self._ledger.get_portfolio(strategy.user_id)
        if portfolio is None:
            logger.warning(f"{strategy_id}: User {strategy.user_id} has no portfolio, skipping tick")
            return TickResult(strategy_id, TickStatus.NO_PORTFOLIO)

        engine = engine_for(strategy.strategy_type, self._rng)
        evaluation = engine.evaluate(
            strategy.to_config(),
            strategy.load_state(),
            reading.price,
            portfolio.balances,
        )
        if not evaluation.needs_commit:
            return TickResult(strategy_id, TickStatus.IDLE, state_version=strategy.state_version)

        state_blob = dump_state(evaluation.state) if evaluation.state_changed else None
        try:
            commit = self._ledger.commit_tick(
                strategy_id,
                expected_version=strategy.state_version,
                fills=evaluation.fills,
                state=state_blob,
            )
        except StaleStateError as e:
            logger.warning(f"{strategy_id}: Discarding tick: {e}")
            return TickResult(strategy_id, TickStatus.STALE)
        except InsufficientBalanceError as e:
            logger.warning(f"{strategy_id}: Discarding tick, portfolio changed: {e}")
            return TickResult(strategy_id, TickStatus.REJECTED)

        for fill in evaluation.fills:
            logger.info(
                f"{strategy_id}: {fill.side.upper()} {fill.amount} BTC at ${fill.price} "
                f"(total ${fill.total})"
            )
        return TickResult(
            strategy_id,
            TickStatus.COMMITTED,
            fills=list(evaluation.fills),
            state_version=commit.state_version,
        )
