"""Bidding strategies for the builder."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class StrategyConfig:
    """Bidding options.

    ``bid_percent`` is the fraction of the block value to bid (default 1.0);
    ``subsidy_wei`` is added to every bid (default 0).
    """

    bid_percent: float | None = None
    subsidy_wei: int | None = None


class BasicStrategy:
    """Bids a fixed fraction of each payload's revenue plus a subsidy."""

    def __init__(self, config: StrategyConfig) -> None:
        percent = 1.0 if config.bid_percent is None else float(config.bid_percent)
        self.bid_percent = min(max(percent, 0.0), 1.0)
        self.subsidy_wei = config.subsidy_wei or 0
        if self.subsidy_wei < 0:
            raise ValueError("subsidy_wei must not be negative")

    def compute_value(self, current_revenue: int) -> int:
        """Return the bid value for the given revenue, in wei."""
        if current_revenue < 0:
            raise ValueError("revenue must not be negative")
        value = current_revenue * int(self.bid_percent * 100.0) // 100
        return value + self.subsidy_wei

    async def run(self, auction: Any, current_revenue: int) -> int | None:
        """Return the value to bid in ``auction``, or ``None`` to skip bidding."""
        return self.compute_value(current_revenue)