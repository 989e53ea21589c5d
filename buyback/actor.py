"""
Buyback Actor - spends a fixed amount of SOL on the tracked token each cycle.

The cycle is: check balance, quote, build swap, sign, send, confirm. Any
failure after the balance check propagates to the scheduler, which logs it
and waits for the next tick. A transaction that was sent but never confirmed
is not counted, even if it lands later.
"""

import logging
from typing import Optional

from buyback.config import BuybackConfig
from buyback.jupiter import SOL_MINT, JupiterClient
from buyback.models import BuybackEvent, lamports_to_sol, sol_to_lamports
from buyback.rpc import SolanaRpcClient
from buyback.sources import EventCallback, PurchaseSource
from buyback.wallet import BuybackWallet

logger = logging.getLogger(__name__)


class BuybackActor(PurchaseSource):
    """Purchase source that executes swaps from the held wallet."""

    name = "actor"

    def __init__(
        self,
        config: BuybackConfig,
        rpc: SolanaRpcClient,
        jupiter: JupiterClient,
        wallet: BuybackWallet,
    ):
        super().__init__(initial_delay=config.initial_delay)
        self.config = config
        self.rpc = rpc
        self.jupiter = jupiter
        self.wallet = wallet

    @property
    def wallet_address(self) -> Optional[str]:
        return self.wallet.address

    async def run_cycle(self, on_event: EventCallback) -> int:
        balance = lamports_to_sol(await self.rpc.get_balance(self.wallet.address))
        logger.info(f"Wallet balance: {balance:.4f} SOL")

        min_required = self.config.min_required_sol
        if balance < min_required:
            logger.info(f"Need {min_required:.3f} SOL, have {balance:.4f} SOL")
            return 0

        event = await self.execute_buyback()
        await self._emit(on_event, event)
        return 1

    async def execute_buyback(self) -> BuybackEvent:
        """Swap the fixed SOL amount into the tracked token and wait for confirmation."""
        sol_amount = self.config.buyback_amount_sol
        logger.info(f"Executing buyback: {sol_amount} SOL -> {self.config.token_address[:8]}...")

        quote = await self.jupiter.get_quote(
            input_mint=SOL_MINT,
            output_mint=self.config.token_address,
            amount=sol_to_lamports(sol_amount),
            slippage_bps=self.config.slippage_bps,
        )
        tokens_out = quote.output_amount_ui(self.config.token_decimals)
        logger.info(f"Quote: {sol_amount} SOL -> {tokens_out} tokens")

        tx_bytes = await self.jupiter.get_swap_transaction(quote, self.wallet.address)
        signed_tx = self.wallet.sign_transaction(tx_bytes)

        signature = await self.rpc.send_transaction(signed_tx, skip_preflight=False, max_retries=3)
        logger.info(f"Buyback TX: {signature}")

        status = await self.rpc.confirm_transaction(signature, commitment="confirmed")
        logger.info(f"Buyback confirmed: {signature[:12]}... ({status})")

        return BuybackEvent(
            transaction_id=signature,
            sol_spent=sol_amount,
            tokens_received=tokens_out,
        )

    async def close(self) -> None:
        await self.jupiter.close()
        await self.rpc.close()
