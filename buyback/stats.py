"""
Stats aggregation.

Totals only ever grow: there is no rollback once an event is applied, even
if broadcasting it fails afterwards.
"""

import logging
from typing import Optional

from buyback.models import BuybackEvent, Stats

logger = logging.getLogger(__name__)


def apply_event(stats: Stats, event: BuybackEvent) -> Stats:
    """Return new totals with ``event`` counted once."""
    return Stats(
        total_buybacks=stats.total_buybacks + 1,
        total_sol=stats.total_sol + event.sol_spent,
        total_tokens=stats.total_tokens + event.tokens_received,
    )


class StatsAggregator:
    """Single owner of the running Stats value."""

    def __init__(self, initial: Optional[Stats] = None):
        self._stats = initial or Stats()

    @property
    def stats(self) -> Stats:
        return self._stats

    def apply(self, event: BuybackEvent) -> Stats:
        self._stats = apply_event(self._stats, event)
        logger.info(
            f"Total buybacks: {self._stats.total_buybacks} | "
            f"SOL spent: {self._stats.total_sol:.4f} | "
            f"Tokens: {self._stats.total_tokens}"
        )
        return self._stats
