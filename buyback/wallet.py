"""
Held wallet for Actor mode.

Loads a single keypair from a base58 secret and signs the swap transactions
Jupiter builds for it. The keypair never leaves this class.
"""

import logging

import base58
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

logger = logging.getLogger(__name__)


class WalletError(Exception):
    """Raised when the key cannot be loaded or a payload cannot be signed."""
    pass


class BuybackWallet:
    """Signing wallet backed by one in-memory keypair."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair
        self.address = str(keypair.pubkey())

    @classmethod
    def from_base58(cls, private_key: str) -> "BuybackWallet":
        """
        Create a wallet from a base58 encoded 64-byte secret key.

        Raises:
            WalletError: if the key is empty or not a valid keypair
        """
        if not private_key:
            raise WalletError("No private key configured")
        try:
            key_bytes = base58.b58decode(private_key.strip())
            keypair = Keypair.from_bytes(key_bytes)
        except Exception as e:
            # Never echo key material back into logs
            raise WalletError(f"Failed to load wallet: {type(e).__name__}") from None

        wallet = cls(keypair)
        logger.info(f"Wallet initialized: {wallet.address}")
        return wallet

    @property
    def address_short(self) -> str:
        return f"{self.address[:8]}...{self.address[-4:]}"

    def sign_transaction(self, transaction_bytes: bytes) -> bytes:
        """
        Sign a serialized versioned transaction.

        Args:
            transaction_bytes: Unsigned transaction from the swap API

        Returns:
            Signed transaction bytes ready for submission
        """
        try:
            unsigned = VersionedTransaction.from_bytes(bytes(transaction_bytes))
            signed = VersionedTransaction(unsigned.message, [self._keypair])
        except Exception as e:
            raise WalletError(f"Failed to sign transaction: {e}") from e
        return bytes(signed)
