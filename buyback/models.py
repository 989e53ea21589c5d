"""
Data model for the buyback pipeline.

BuybackEvent is produced by a purchase source, Stats is the running total
owned by the aggregator, SeenSet is the detector's de-duplication memory.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List

LAMPORTS_PER_SOL = 1_000_000_000


def lamports_to_sol(lamports: int) -> Decimal:
    """Convert an integer lamport amount to SOL."""
    return Decimal(int(lamports)) / Decimal(LAMPORTS_PER_SOL)


def sol_to_lamports(sol: Decimal) -> int:
    """Convert SOL to lamports, rounding down like the swap API expects."""
    return int(Decimal(sol) * LAMPORTS_PER_SOL)


@dataclass(frozen=True)
class BuybackEvent:
    """A single detected or executed purchase."""
    transaction_id: str
    sol_spent: Decimal
    tokens_received: Decimal

    @property
    def signature_short(self) -> str:
        """Get shortened transaction signature."""
        if len(self.transaction_id) > 8:
            return f"{self.transaction_id[:4]}...{self.transaction_id[-4:]}"
        return self.transaction_id

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": "buyback",
            "transactionId": self.transaction_id,
            "solSpent": self.sol_spent,
            "tokensReceived": self.tokens_received,
        }


@dataclass(frozen=True)
class Stats:
    """Running totals across the process lifetime."""
    total_buybacks: int = 0
    total_sol: Decimal = Decimal("0")
    total_tokens: Decimal = Decimal("0")

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": "stats",
            "totalBuybacks": self.total_buybacks,
            "totalSol": self.total_sol,
            "totalTokens": self.total_tokens,
        }


@dataclass
class SeenSet:
    """
    Bounded set of already-handled transaction signatures.

    Once more than ``high_water`` entries are held, the set is cut back to the
    ``retain`` most recently added ones. Dropping old entries is only safe
    while ``retain`` covers the whole history window the detector polls; use
    ``for_window`` to size the set from that window.
    """
    high_water: int = 100
    retain: int = 50
    _entries: Dict[str, None] = field(default_factory=dict, repr=False)

    @classmethod
    def for_window(cls, window: int) -> "SeenSet":
        """Create a set that never forgets a signature still inside ``window``."""
        retain = max(50, window)
        return cls(high_water=max(100, 2 * retain), retain=retain)

    def __contains__(self, signature: object) -> bool:
        return signature in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def add(self, signature: str) -> None:
        if signature in self._entries:
            return
        self._entries[signature] = None
        if len(self._entries) > self.high_water:
            kept: List[str] = list(self._entries)[-self.retain:]
            self._entries = dict.fromkeys(kept)

    def update(self, signatures: Iterable[str]) -> None:
        for signature in signatures:
            self.add(signature)
