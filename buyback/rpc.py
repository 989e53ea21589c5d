"""
Solana JSON-RPC client.

Thin async wrapper over the handful of ledger calls the relay needs:
balances, signature history, transaction detail, send and confirm.

Usage:
    async with SolanaRpcClient(rpc_url) as rpc:
        lamports = await rpc.get_balance(address)
        sigs = await rpc.get_signatures_for_address(address, limit=10)
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
CONFIRM_TIMEOUT = 30  # seconds
CONFIRM_POLL_INTERVAL = 0.5


# =============================================================================
# Custom Exceptions
# =============================================================================

class RpcError(Exception):
    """Base exception for ledger RPC failures."""
    pass


class RpcTimeoutError(RpcError):
    """Raised when a transaction is not confirmed in time."""
    pass


# =============================================================================
# Client
# =============================================================================

class SolanaRpcClient:
    """JSON-RPC client for a Solana endpoint."""

    def __init__(
        self,
        rpc_url: str,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        confirm_timeout: float = CONFIRM_TIMEOUT,
        confirm_poll_interval: float = CONFIRM_POLL_INTERVAL,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.confirm_timeout = confirm_timeout
        self.confirm_poll_interval = confirm_poll_interval
        self._session = session
        self._owns_session = session is None
        self._request_id = 0

    # =========================================================================
    # Session Management
    # =========================================================================

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _call(self, method: str, params: List[Any]) -> Any:
        """Make a JSON-RPC request and return its ``result``."""
        session = await self._get_session()
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        try:
            async with session.post(self.rpc_url, json=payload) as resp:
                if resp.status != 200:
                    raise RpcError(f"{method} failed: HTTP {resp.status}")
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RpcError(f"{method} request error: {e}") from e
        except json.JSONDecodeError as e:
            raise RpcError(f"{method} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise RpcError(f"{method} returned malformed response")
        if data.get("error"):
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RpcError(f"{method} error: {message}")
        if "result" not in data:
            raise RpcError(f"{method} response missing result")
        return data["result"]

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_balance(self, address: str) -> int:
        """
        Get account balance in lamports.

        Args:
            address: Account address.

        Returns:
            Balance in lamports.
        """
        result = await self._call("getBalance", [address, {"commitment": "confirmed"}])
        if isinstance(result, dict) and "value" in result:
            result = result["value"]
        if not isinstance(result, int):
            raise RpcError(f"getBalance returned malformed value: {result!r}")
        return result

    async def get_signatures_for_address(
        self,
        address: str,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        """
        Get recent transaction signatures for an address, newest first.

        Args:
            address: The address to get signatures for.
            limit: Maximum number of signatures.

        Returns:
            List of signature info dicts (``signature``, ``err``, ``blockTime``...).
        """
        result = await self._call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": "confirmed"}],
        )
        if not isinstance(result, list):
            raise RpcError("getSignaturesForAddress returned malformed result")
        return result

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        """
        Get parsed transaction detail.

        Returns:
            Transaction dict, or None if the node does not have it yet.
        """
        return await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )

    # =========================================================================
    # Writes
    # =========================================================================

    async def send_transaction(
        self,
        signed_transaction: bytes,
        skip_preflight: bool = False,
        max_retries: int = 3,
    ) -> str:
        """
        Submit a signed transaction.

        Args:
            signed_transaction: Serialized signed transaction.
            skip_preflight: Skip preflight checks.
            max_retries: Node-side resend attempts.

        Returns:
            Transaction signature.
        """
        result = await self._call(
            "sendTransaction",
            [
                base64.b64encode(signed_transaction).decode(),
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": "confirmed",
                    "maxRetries": max_retries,
                },
            ],
        )
        if not isinstance(result, str) or not result:
            raise RpcError("sendTransaction returned no signature")
        return result

    async def confirm_transaction(
        self,
        signature: str,
        commitment: str = "confirmed",
        timeout: Optional[float] = None,
    ) -> str:
        """
        Wait for transaction confirmation.

        Args:
            signature: Transaction signature to confirm.
            commitment: ``processed``, ``confirmed`` or ``finalized``.
            timeout: Seconds to wait (default: ``confirm_timeout``).

        Returns:
            The confirmation status reached.

        Raises:
            RpcError: the transaction landed with an error.
            RpcTimeoutError: no confirmation within the timeout.
        """
        accepted = {
            "processed": ("processed", "confirmed", "finalized"),
            "confirmed": ("confirmed", "finalized"),
            "finalized": ("finalized",),
        }[commitment]
        timeout = self.confirm_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            result = await self._call(
                "getSignatureStatuses",
                [[signature], {"searchTransactionHistory": True}],
            )
            statuses = result.get("value", []) if isinstance(result, dict) else []
            status = statuses[0] if statuses else None

            if status:
                if status.get("err"):
                    raise RpcError(f"Transaction failed: {status['err']}")
                conf_status = status.get("confirmationStatus") or ""
                if conf_status in accepted:
                    return conf_status

            if loop.time() >= deadline:
                raise RpcTimeoutError(f"Transaction {signature[:12]}... not confirmed after {timeout:g}s")
            await asyncio.sleep(self.confirm_poll_interval)
