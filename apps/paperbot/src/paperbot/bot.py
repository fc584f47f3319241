"""Control surface of the paper trading bot.

TradingBot is what a dashboard backend calls: it flips strategies on and
off, records manual trades and summarizes portfolios. Blocking ledger calls
run in worker threads so the event loop keeps ticking other strategies.
"""

import asyncio
import logging
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional

from papergrid import (
    Fill,
    PortfolioStats,
    TradeSide,
    compute_portfolio_stats,
    quantize_btc,
)
from ledger_db import (
    Ledger,
    PortfolioSnapshot,
    StrategySnapshot,
    TransactionSnapshot,
)
from price_feed import PriceService

from paperbot.scheduler import Scheduler

logger = logging.getLogger(__name__)


class TradingBot:
    """Strategy lifecycle, manual trades and portfolio stats."""

    def __init__(self, ledger: Ledger, scheduler: Scheduler, price_service: PriceService):
        self._ledger = ledger
        self._scheduler = scheduler
        self._prices = price_service

    async def activate_strategy(self, strategy_id: str) -> StrategySnapshot:
        """Mark a strategy active and start its loop.

        Opens the owner's portfolio if needed. Existing engine state is kept,
        so a stopped grid resumes where it left off.

        Raises:
            NotFoundError: If the strategy does not exist
        """
        strategy = await asyncio.to_thread(self._ledger.update_strategy, strategy_id, is_active=True)
        await asyncio.to_thread(self._ledger.get_or_create_portfolio, strategy.user_id)
        await self._scheduler.start(strategy_id)
        logger.info(f"{strategy_id}: Activated")
        return strategy

    async def deactivate_strategy(self, strategy_id: str) -> StrategySnapshot:
        """Stop a strategy's loop and mark it inactive. State is kept.

        Raises:
            NotFoundError: If the strategy does not exist
        """
        self._scheduler.stop(strategy_id)
        strategy = await asyncio.to_thread(self._ledger.update_strategy, strategy_id, is_active=False)
        logger.info(f"{strategy_id}: Deactivated")
        return strategy

    async def delete_strategy(self, strategy_id: str) -> bool:
        """Stop and delete a strategy together with its state.

        Returns:
            False if the strategy did not exist
        """
        self._scheduler.stop(strategy_id)
        return await asyncio.to_thread(self._ledger.delete_strategy, strategy_id)

    async def reset_strategy_state(self, strategy_id: str) -> StrategySnapshot:
        """Discard a strategy's grid so its next tick starts over.

        A tick in flight against the old state is discarded by the ledger's
        version check.

        Raises:
            NotFoundError: If the strategy does not exist
        """
        return await asyncio.to_thread(self._ledger.reset_strategy_state, strategy_id)

    async def record_manual_trade(
        self,
        user_id: str,
        side: TradeSide,
        amount: Decimal,
        price: Optional[Decimal] = None,
    ) -> tuple[PortfolioSnapshot, TransactionSnapshot]:
        """Buy or sell BTC by hand at the given or current price.

        Raises:
            ValueError: If amount or price is not positive
            InsufficientBalanceError: If the trade would overdraw the portfolio
            NotFoundError: If the user does not exist
        """
        amount = quantize_btc(Decimal(amount))
        if amount <= 0:
            raise ValueError(f"Trade amount must be positive, got {amount}")
        if price is None:
            reading = self._prices.get_current_price()
            if reading is None:
                reading = await asyncio.to_thread(self._prices.fetch_price)
            price = reading.price
        if price <= 0:
            raise ValueError(f"Trade price must be positive, got {price}")

        fill = Fill.create(TradeSide(side), amount, Decimal(price))
        portfolio, tx = await asyncio.to_thread(self._ledger.record_trade, user_id, fill)
        logger.info(f"Manual {fill.side.upper()} {fill.amount} BTC at ${fill.price} for user {user_id}")
        return portfolio, tx

    async def get_stats(self, user_id: str, now: Optional[datetime] = None) -> PortfolioStats:
        """Dashboard summary of a user's portfolio.

        Raises:
            NotFoundError: If the user does not exist
        """
        portfolio = await asyncio.to_thread(self._ledger.get_or_create_portfolio, user_id)
        transactions = await asyncio.to_thread(self._ledger.get_transactions, user_id, None)
        strategies = await asyncio.to_thread(self._ledger.get_strategies, user_id)
        reading = self._prices.get_current_price()
        return compute_portfolio_stats(
            portfolio.usd_balance,
            portfolio.btc_balance,
            transactions,
            reading.price if reading else None,
            now or datetime.now(UTC),
            strategies=strategies,
        )

    async def sync_all_active_strategies(self) -> int:
        """Start loops for all strategies marked active, e.g. after a restart."""
        return await self._scheduler.resync()

