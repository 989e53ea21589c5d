"""
Purchase sources.

A purchase source is run once per scheduler tick and reports every purchase
it finds (Detector) or makes (Actor) through the ``on_event`` callback.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Union

from buyback.config import MODE_ACTOR, BuybackConfig
from buyback.models import BuybackEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[BuybackEvent], Union[None, Awaitable[None]]]


class PurchaseSource(ABC):
    """Common interface for the Actor and Detector modes."""

    name: str = "source"

    def __init__(self, initial_delay: float = 0.0):
        self.initial_delay = initial_delay

    @property
    @abstractmethod
    def wallet_address(self) -> Optional[str]:
        """Address shown to clients in the config message."""

    @property
    def active(self) -> bool:
        """False when configuration is missing and the source must stay idle."""
        return True

    @abstractmethod
    async def run_cycle(self, on_event: EventCallback) -> int:
        """
        Run one poll/purchase cycle.

        Returns:
            Number of events emitted.
        """

    async def close(self) -> None:
        """Release network resources."""

    async def _emit(self, on_event: EventCallback, event: BuybackEvent) -> None:
        result = on_event(event)
        if asyncio.iscoroutine(result):
            await result


class IdleSource(PurchaseSource):
    """Stand-in used when the configured mode lacks its identity or key."""

    name = "idle"

    def __init__(self, wallet_address: Optional[str] = None, reason: str = ""):
        super().__init__()
        self._wallet_address = wallet_address
        self.reason = reason

    @property
    def wallet_address(self) -> Optional[str]:
        return self._wallet_address

    @property
    def active(self) -> bool:
        return False

    async def run_cycle(self, on_event: EventCallback) -> int:
        return 0


def build_source(config: BuybackConfig) -> PurchaseSource:
    """Pick the purchase source for the configured mode."""
    from buyback.jupiter import JupiterClient
    from buyback.rpc import SolanaRpcClient

    if not config.is_configured:
        wallet = config.wallet_address or None
        return IdleSource(wallet_address=wallet, reason="missing configuration")

    rpc = SolanaRpcClient(config.rpc_url)

    if config.mode == MODE_ACTOR:
        from buyback.actor import BuybackActor
        from buyback.wallet import BuybackWallet, WalletError

        try:
            wallet = BuybackWallet.from_base58(config.private_key)
        except WalletError as e:
            logger.error(f"Failed to initialize wallet: {e}")
            return IdleSource(reason=str(e))

        return BuybackActor(
            config=config,
            rpc=rpc,
            jupiter=JupiterClient(config.jupiter_api_url),
            wallet=wallet,
        )

    from buyback.detector import BuybackDetector

    return BuybackDetector(config=config, rpc=rpc)
