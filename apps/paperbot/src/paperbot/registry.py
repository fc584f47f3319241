"""Registry of running strategy loops."""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class StrategyRegistry:
    """Maps strategy id to the asyncio task running its loop.

    At most one task is registered per strategy. Finished tasks remove
    themselves, so a strategy whose loop ended can be started again.
    """

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def __contains__(self, strategy_id: str) -> bool:
        return self.is_running(strategy_id)

    def __len__(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def is_running(self, strategy_id: str) -> bool:
        task = self._tasks.get(strategy_id)
        return task is not None and not task.done()

    def get(self, strategy_id: str) -> Optional[asyncio.Task]:
        return self._tasks.get(strategy_id)

    def running_ids(self) -> list[str]:
        return [sid for sid, task in self._tasks.items() if not task.done()]

    def register(self, strategy_id: str, task: asyncio.Task) -> None:
        """Track a strategy loop.

        Raises:
            RuntimeError: If a loop for the strategy is already running
        """
        if self.is_running(strategy_id):
            raise RuntimeError(f"Strategy {strategy_id} is already running")
        self._tasks[strategy_id] = task
        task.add_done_callback(lambda t: self._discard(strategy_id, t))

    def pop(self, strategy_id: str) -> Optional[asyncio.Task]:
        """Stop tracking a strategy and return its task."""
        return self._tasks.pop(strategy_id, None)

    def pop_all(self) -> list[asyncio.Task]:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        return tasks

    def _discard(self, strategy_id: str, task: asyncio.Task) -> None:
        # A newer loop may have been registered under the same id
        if self._tasks.get(strategy_id) is task:
            del self._tasks[strategy_id]
            logger.debug(f"{strategy_id}: Loop finished")
