"""
Jupiter Aggregator integration.

Only the two calls a buyback needs: a quote for a fixed input amount and the
ready-to-sign swap transaction built from that quote.
"""

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)

SOL_MINT = "So11111111111111111111111111111111111111112"


class JupiterError(Exception):
    """Raised when a quote or swap request fails or returns an error payload."""
    pass


@dataclass
class SwapQuote:
    """Quote for a token swap."""
    input_mint: str
    output_mint: str
    input_amount: int          # In lamports/smallest unit
    output_amount: int         # Expected output in smallest unit
    slippage_bps: int
    quote_response: Dict[str, Any]  # Raw Jupiter response for the swap call

    def output_amount_ui(self, decimals: int) -> Decimal:
        """Human readable output amount."""
        return Decimal(self.output_amount) / (Decimal(10) ** decimals)


class JupiterClient:
    """Jupiter Aggregator API client for Solana swaps."""

    def __init__(
        self,
        api_url: str = "https://quote-api.jup.ag/v6",
        session: Optional[aiohttp.ClientSession] = None,
        timeout: int = 30,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the client session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 100,
    ) -> SwapQuote:
        """
        Get a swap quote from Jupiter.

        Args:
            input_mint: Input token mint address
            output_mint: Output token mint address
            amount: Amount in smallest unit (lamports for SOL)
            slippage_bps: Slippage tolerance in basis points (100 = 1%)

        Returns:
            SwapQuote with the raw response attached

        Raises:
            JupiterError: on transport failure or an error payload
        """
        session = await self._get_session()
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
        }

        try:
            async with session.get(f"{self.api_url}/quote", params=params) as resp:
                data = await resp.json(content_type=None)
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            raise JupiterError(f"Quote request failed: {e}") from e

        if not isinstance(data, dict) or not data:
            raise JupiterError("No quote")
        if data.get("error"):
            raise JupiterError(f"Quote error: {data['error']}")
        if status != 200:
            raise JupiterError(f"Quote failed: HTTP {status}")

        try:
            input_amount = int(data.get("inAmount", amount))
            output_amount = int(data["outAmount"])
        except (KeyError, TypeError, ValueError) as e:
            raise JupiterError(f"Malformed quote: {e}") from e

        return SwapQuote(
            input_mint=input_mint,
            output_mint=output_mint,
            input_amount=input_amount,
            output_amount=output_amount,
            slippage_bps=slippage_bps,
            quote_response=data,
        )

    async def get_swap_transaction(
        self,
        quote: SwapQuote,
        user_public_key: str,
        wrap_unwrap_sol: bool = True,
    ) -> bytes:
        """
        Get the serialized swap transaction for signing.

        Args:
            quote: Quote from get_quote()
            user_public_key: Wallet public key paying for the swap
            wrap_unwrap_sol: Auto wrap/unwrap SOL

        Returns:
            Unsigned transaction bytes
        """
        session = await self._get_session()
        payload = {
            "quoteResponse": quote.quote_response,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": wrap_unwrap_sol,
        }

        try:
            async with session.post(f"{self.api_url}/swap", json=payload) as resp:
                data = await resp.json(content_type=None)
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            raise JupiterError(f"Swap request failed: {e}") from e

        swap_transaction = data.get("swapTransaction") if isinstance(data, dict) else None
        if status != 200 or not swap_transaction:
            error = data.get("error") if isinstance(data, dict) else None
            raise JupiterError(f"Swap error: {error or 'No transaction'}")

        try:
            return base64.b64decode(swap_transaction)
        except (ValueError, TypeError) as e:
            raise JupiterError("Swap transaction is not valid base64") from e
