"""
Buyback service context.

Owns every piece of mutable state (stats, the purchase source and its seen
set, the client registry) so that tests and multiple app instances never
share module globals.
"""

import logging
from typing import Any, Dict, Optional

from buyback.config import BuybackConfig
from buyback.hub import BroadcastHub
from buyback.models import BuybackEvent, Stats
from buyback.scheduler import PollScheduler
from buyback.sources import PurchaseSource, build_source
from buyback.stats import StatsAggregator

logger = logging.getLogger(__name__)


class BuybackService:
    """Wires source -> stats -> hub and drives it from the scheduler."""

    def __init__(
        self,
        config: BuybackConfig,
        source: Optional[PurchaseSource] = None,
        aggregator: Optional[StatsAggregator] = None,
    ):
        self.config = config
        self.source = source if source is not None else build_source(config)
        self.aggregator = aggregator or StatsAggregator()
        self.hub = BroadcastHub(
            snapshot=self.stats_message,
            config_message=self.config_message,
        )
        self.scheduler = PollScheduler(
            cycle=self.run_cycle,
            interval=config.interval_seconds,
            initial_delay=self.source.initial_delay,
            name=self.source.name,
        )

    @property
    def stats(self) -> Stats:
        return self.aggregator.stats

    @property
    def active(self) -> bool:
        return self.source.active

    def stats_message(self) -> Dict[str, Any]:
        return self.stats.to_message()

    def config_message(self) -> Dict[str, Any]:
        return {
            "type": "config",
            "tokenAddress": self.config.token_address or None,
            "walletAddress": self.source.wallet_address,
        }

    async def handle_event(self, event: BuybackEvent) -> None:
        """Count an event, then push it to every client."""
        self.aggregator.apply(event)
        try:
            await self.hub.publish(event.to_message())
        except Exception as e:
            # Totals stay applied, there is no rollback
            logger.error(f"Broadcast failed for {event.signature_short}: {e}")

    async def run_cycle(self) -> int:
        return await self.source.run_cycle(self.handle_event)

    def start(self) -> None:
        if not self.source.active:
            logger.warning(f"Buyback source idle ({getattr(self.source, 'reason', '') or 'not configured'})")
            return
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.source.close()
        logger.info("Buyback service stopped")
