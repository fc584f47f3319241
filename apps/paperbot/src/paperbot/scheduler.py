"""Per-strategy tick loops.

Each active strategy gets one asyncio task that sleeps tick_interval seconds
and then runs one tick in a worker thread. Ticks of one strategy never
overlap because the loop awaits each tick before sleeping again.
"""

import asyncio
import logging
from typing import Optional

from ledger_db import Ledger

from paperbot.notifier import Notifier
from paperbot.registry import StrategyRegistry
from paperbot.runner import StrategyRunner, TickStatus

logger = logging.getLogger(__name__)


class Scheduler:
    """Starts and stops strategy loops.

    Example:
        scheduler = Scheduler(runner, ledger, tick_interval=30)
        await scheduler.resync()       # start every active strategy
        scheduler.stop(strategy_id)
        await scheduler.stop_all()
    """

    def __init__(
        self,
        runner: StrategyRunner,
        ledger: Ledger,
        registry: Optional[StrategyRegistry] = None,
        tick_interval: float = 30.0,
        notifier: Optional[Notifier] = None,
    ):
        self._runner = runner
        self._ledger = ledger
        self._registry = registry or StrategyRegistry()
        self._tick_interval = tick_interval
        self._notifier = notifier or Notifier()

    @property
    def registry(self) -> StrategyRegistry:
        return self._registry

    def is_running(self, strategy_id: str) -> bool:
        return self._registry.is_running(strategy_id)

    async def start(self, strategy_id: str) -> bool:
        """Start the loop of a strategy.

        No-op if the loop is already running. The strategy must exist and be
        active.

        Returns:
            True if a new loop was started
        """
        if self._registry.is_running(strategy_id):
            return False

        strategy = await asyncio.to_thread(self._ledger.get_strategy, strategy_id)
        if strategy is None:
            logger.warning(f"{strategy_id}: Cannot start, strategy not found")
            return False
        if not strategy.is_active:
            logger.warning(f"{strategy_id}: Cannot start, strategy is not active")
            return False

        # Another start may have won while the strategy was loading
        if self._registry.is_running(strategy_id):
            return False

        task = asyncio.create_task(self._run_loop(strategy_id), name=f"strategy-{strategy_id}")
        self._registry.register(strategy_id, task)
        logger.info(f"{strategy_id}: Started {strategy.strategy_type} strategy '{strategy.name}'")
        return True

    def stop(self, strategy_id: str) -> bool:
        """Cancel the loop of a strategy. Idempotent.

        A tick already running in a worker thread finishes on its own; its
        commit is version-checked by the ledger.

        Returns:
            True if a running loop was cancelled
        """
        task = self._registry.pop(strategy_id)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info(f"{strategy_id}: Stopped")
        return True

    async def resync(self) -> int:
        """Start a loop for every active strategy that has none.

        Returns:
            Number of loops started
        """
        strategies = await asyncio.to_thread(self._ledger.list_active_strategies)
        started = 0
        for strategy in strategies:
            if await self.start(strategy.strategy_id):
                started += 1
        logger.info(f"Resynced {len(strategies)} active strategies, started {started}")
        return started

    async def stop_all(self) -> None:
        """Cancel every loop and wait for them to finish."""
        tasks = self._registry.pop_all()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Stopped {len(tasks)} strategy loops")

    async def _run_loop(self, strategy_id: str) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            try:
                result = await asyncio.to_thread(self._runner.run_tick, strategy_id)
            except Exception as e:
                self._notifier.tick_failed(strategy_id, e)
                continue

            if result.status == TickStatus.STOPPED:
                logger.info(f"{strategy_id}: Strategy inactive or deleted, ending loop")
                return
