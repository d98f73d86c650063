"""The bidder: turns revenue updates from the payload builder into bid values."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterable

from mevkit.strategy import BasicStrategy, StrategyConfig

logger = logging.getLogger(__name__)

RevenueUpdate = tuple[int, "asyncio.Future[int | None]"]


class Bidder:
    """Runs a bidding strategy for each open auction."""

    def __init__(self, config: StrategyConfig | None = None) -> None:
        self.config = config if config is not None else StrategyConfig()
        self._tasks: set[asyncio.Task[None]] = set()

    def start_bid(
        self, auction: Any, revenue_updates: AsyncIterable[RevenueUpdate]
    ) -> asyncio.Task[None]:
        """Answer each ``(revenue, dispatch)`` update of ``auction`` with a bid value.

        The returned task ends when ``revenue_updates`` is exhausted, or when a
        ``dispatch`` future has already been settled or cancelled by the builder.
        """
        strategy = BasicStrategy(self.config)
        task = asyncio.get_running_loop().create_task(
            self._bid(strategy, auction, revenue_updates)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _bid(
        strategy: BasicStrategy, auction: Any, revenue_updates: AsyncIterable[RevenueUpdate]
    ) -> None:
        async for current_revenue, dispatch in revenue_updates:
            value = await strategy.run(auction, current_revenue)
            if dispatch.done():
                logger.debug("channel closed; could not send bid value to builder")
                break
            dispatch.set_result(value)