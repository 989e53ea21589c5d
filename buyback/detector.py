"""
Buyback Detector - watches an address for purchases made elsewhere.

Each cycle reads the most recent signatures for the watched address and
classifies unseen ones by balance deltas. A transaction counts as a buyback
when the address spent more than the dust threshold in SOL and its balance
of the tracked token went up. That is a heuristic, not a swap decoder: a
buy bundled with other transfers can be missed, and any transfer pair with
the same shape is counted.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from buyback.config import BuybackConfig
from buyback.models import BuybackEvent, SeenSet, lamports_to_sol
from buyback.rpc import RpcError, SolanaRpcClient
from buyback.sources import EventCallback, PurchaseSource

logger = logging.getLogger(__name__)


class TransactionDetailError(RpcError):
    """Raised when transaction detail is missing or lacks balance metadata."""
    pass


def _account_keys(transaction: Dict[str, Any]) -> List[str]:
    message = (transaction.get("transaction") or {}).get("message") or {}
    keys = []
    for key in message.get("accountKeys") or []:
        # jsonParsed returns dicts, json/base64 return plain strings
        keys.append(key.get("pubkey") if isinstance(key, dict) else key)
    return keys


def _token_amount(entry: Dict[str, Any]) -> Decimal:
    ui = entry.get("uiTokenAmount") or {}
    if ui.get("uiAmountString") is not None:
        return Decimal(ui["uiAmountString"])
    if ui.get("uiAmount") is not None:
        return Decimal(str(ui["uiAmount"]))
    if ui.get("amount") is not None and ui.get("decimals") is not None:
        return Decimal(ui["amount"]) / (Decimal(10) ** int(ui["decimals"]))
    return Decimal("0")


def _owned_token_total(
    balances: List[Dict[str, Any]],
    mint: str,
    owner: str,
    keys: List[str],
) -> Decimal:
    total = Decimal("0")
    for entry in balances or []:
        if entry.get("mint") != mint:
            continue
        entry_owner = entry.get("owner")
        if entry_owner is None:
            # Older responses omit owner; fall back to the account itself
            index = entry.get("accountIndex")
            entry_owner = keys[index] if isinstance(index, int) and index < len(keys) else None
        if entry_owner == owner:
            total += _token_amount(entry)
    return total


def balance_deltas(
    transaction: Dict[str, Any],
    watched_address: str,
    token_mint: str,
) -> Tuple[Decimal, Decimal]:
    """
    Compute (SOL spent, tokens received) for the watched address.

    SOL spent is pre minus post of the address's native balance; the
    address's position in the account keys is used, or the fee payer when it
    is not listed. Tokens received is post minus pre of the tracked mint.

    Raises:
        TransactionDetailError: if the transaction has no balance metadata
    """
    meta = transaction.get("meta")
    if not isinstance(meta, dict):
        raise TransactionDetailError("Transaction detail missing meta")

    pre_balances = meta.get("preBalances") or []
    post_balances = meta.get("postBalances") or []
    keys = _account_keys(transaction)
    index = keys.index(watched_address) if watched_address in keys else 0
    if index >= len(pre_balances) or index >= len(post_balances):
        raise TransactionDetailError("Transaction detail missing native balances")

    sol_spent = lamports_to_sol(pre_balances[index] - post_balances[index])

    pre_tokens = _owned_token_total(meta.get("preTokenBalances"), token_mint, watched_address, keys)
    post_tokens = _owned_token_total(meta.get("postTokenBalances"), token_mint, watched_address, keys)

    return sol_spent, post_tokens - pre_tokens


class BuybackDetector(PurchaseSource):
    """Read-only purchase source polling a watched address."""

    name = "detector"

    def __init__(
        self,
        config: BuybackConfig,
        rpc: SolanaRpcClient,
        seen: Optional[SeenSet] = None,
        max_detail_attempts: int = 3,
    ):
        super().__init__(initial_delay=config.initial_delay)
        self.config = config
        self.rpc = rpc
        self.watched_address = config.wallet_address
        self.token_address = config.token_address
        self.signature_limit = config.signature_limit
        self.dust_threshold = config.dust_threshold_sol
        self.seen = seen if seen is not None else SeenSet.for_window(self.signature_limit)
        self.max_detail_attempts = max_detail_attempts
        self._detail_misses: Dict[str, int] = {}

    @property
    def wallet_address(self) -> Optional[str]:
        return self.watched_address

    def classify(self, signature: str, transaction: Dict[str, Any]) -> Optional[BuybackEvent]:
        """Return a BuybackEvent if the transaction looks like a purchase."""
        sol_spent, tokens_received = balance_deltas(
            transaction, self.watched_address, self.token_address
        )
        if sol_spent > self.dust_threshold and tokens_received > 0:
            return BuybackEvent(
                transaction_id=signature,
                sol_spent=sol_spent,
                tokens_received=tokens_received,
            )
        logger.debug(
            f"Not a buyback: {signature[:12]}... (sol={sol_spent}, tokens={tokens_received})"
        )
        return None

    def _evaluate(self, signature: str, transaction: Any) -> Optional[BuybackEvent]:
        if not isinstance(transaction, dict):
            raise TransactionDetailError(f"Transaction {signature[:12]}... not available yet")

        meta = transaction.get("meta") or {}
        if meta.get("err") is not None:
            logger.debug(f"Skipping failed transaction {signature[:12]}...")
            return None
        return self.classify(signature, transaction)

    def _give_up(self, signature: str, error: TransactionDetailError) -> bool:
        """
        Count a missing or malformed detail for ``signature``.

        Returns:
            True once the signature has used up its attempts and was marked
            seen, False while it should still block the cycle.
        """
        misses = self._detail_misses.get(signature, 0) + 1
        if misses < self.max_detail_attempts:
            self._detail_misses[signature] = misses
            logger.warning(f"{error} (attempt {misses}/{self.max_detail_attempts})")
            return False

        self._detail_misses.pop(signature, None)
        self.seen.add(signature)
        logger.warning(f"Skipping {signature[:12]}... after {misses} attempts: {error}")
        return True

    async def run_cycle(self, on_event: EventCallback) -> int:
        signatures = await self.rpc.get_signatures_for_address(
            self.watched_address, limit=self.signature_limit
        )

        emitted = 0
        # RPC returns newest first; totals should accumulate in ledger order
        for sig_info in reversed(signatures):
            signature = sig_info.get("signature") if isinstance(sig_info, dict) else None
            if not signature:
                raise RpcError("Signature entry missing signature")
            if signature in self.seen:
                continue

            if sig_info.get("err") is not None:
                logger.debug(f"Skipping failed transaction {signature[:12]}...")
                self.seen.add(signature)
                continue

            transaction = await self.rpc.get_transaction(signature)
            try:
                event = self._evaluate(signature, transaction)
            except TransactionDetailError as e:
                if self._give_up(signature, e):
                    continue
                raise

            self._detail_misses.pop(signature, None)
            self.seen.add(signature)
            if event:
                logger.info(
                    f"Buyback detected: {event.sol_spent} SOL -> {event.tokens_received} tokens "
                    f"({event.signature_short})"
                )
                emitted += 1
                await self._emit(on_event, event)

        return emitted

    async def close(self) -> None:
        await self.rpc.close()
