"""
Buyback Relay Test Configuration

Shared fixtures for all tests: configs for both modes, a fake aiohttp
session for the outbound clients, and builders for RPC payloads.
"""

import os
import sys
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

# Add project root to path FIRST
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from buyback.config import MODE_ACTOR, MODE_DETECTOR, BuybackConfig

WATCHED = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
POOL = "58oQChx4yWmvKdwLLZzBi4ChoCc2fqCUWBkwMihLYQo2"
TOKEN_ACCOUNT = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
TOKEN_MINT = "GakeAiTokenMint1111111111111111111111111111"


# ============================================================================
# Configs
# ============================================================================

@pytest.fixture
def detector_config(tmp_path):
    return BuybackConfig(
        token_address=TOKEN_MINT,
        wallet_address=WATCHED,
        mode=MODE_DETECTOR,
        interval_seconds=20,
        asset_root=tmp_path,
    )


@pytest.fixture
def actor_config(tmp_path):
    return BuybackConfig(
        token_address=TOKEN_MINT,
        private_key="unused-in-unit-tests",
        mode=MODE_ACTOR,
        interval_seconds=20,
        asset_root=tmp_path,
    )


# Mock ledger client
@pytest.fixture
def mock_rpc():
    rpc = AsyncMock()
    rpc.get_signatures_for_address.return_value = []
    rpc.get_transaction.return_value = None
    return rpc


# ============================================================================
# Payload Builders
# ============================================================================

def token_balance(amount: Optional[float], owner: str = WATCHED, mint: str = TOKEN_MINT) -> Dict[str, Any]:
    return {
        "accountIndex": 2,
        "mint": mint,
        "owner": owner,
        "uiTokenAmount": {
            "amount": str(int((amount or 0) * 10 ** 6)),
            "decimals": 6,
            "uiAmount": amount,
            "uiAmountString": str(amount) if amount is not None else "0",
        },
    }


def make_transaction(
    pre_lamports: int,
    post_lamports: int,
    pre_tokens: Optional[float] = None,
    post_tokens: Optional[float] = None,
    err: Any = None,
    watched: str = WATCHED,
    mint: str = TOKEN_MINT,
) -> Dict[str, Any]:
    """Build a jsonParsed getTransaction result for the watched address."""
    return {
        "slot": 250_000_000,
        "blockTime": 1_700_000_000,
        "meta": {
            "err": err,
            "fee": 5000,
            "preBalances": [pre_lamports, 2_039_280, 2_039_280],
            "postBalances": [post_lamports, 2_039_280, 2_039_280],
            "preTokenBalances": [] if pre_tokens is None else [token_balance(pre_tokens, mint=mint)],
            "postTokenBalances": [] if post_tokens is None else [token_balance(post_tokens, mint=mint)],
        },
        "transaction": {
            "message": {
                "accountKeys": [
                    {"pubkey": watched, "signer": True, "writable": True},
                    {"pubkey": POOL, "signer": False, "writable": True},
                    {"pubkey": TOKEN_ACCOUNT, "signer": False, "writable": True},
                ],
            },
            "signatures": ["placeholder"],
        },
    }


def signature_info(signature: str, err: Any = None) -> Dict[str, Any]:
    return {"signature": signature, "err": err, "slot": 1, "confirmationStatus": "confirmed"}


# ============================================================================
# Fake aiohttp session
# ============================================================================

class FakeResponse:
    """Async context manager standing in for aiohttp.ClientResponse."""

    def __init__(self, payload: Any, status: int = 200):
        self.payload = payload
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self, content_type: Optional[str] = "application/json"):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    async def text(self):
        return str(self.payload)


class FakeSession:
    """
    Records requests and replays canned responses.

    JSON-RPC posts are answered per method name; other requests per
    (verb, path suffix). A queue of several responses is consumed in order
    and its last entry repeats.
    """

    def __init__(self):
        self.closed = False
        self.requests: List[Dict[str, Any]] = []
        self._rpc: Dict[str, List[FakeResponse]] = {}
        self._routes: Dict[tuple, List[FakeResponse]] = {}

    def add_rpc(self, method: str, result: Any = None, error: Any = None, status: int = 200):
        body = {"jsonrpc": "2.0", "id": 1}
        if error is not None:
            body["error"] = error
        else:
            body["result"] = result
        self._rpc.setdefault(method, []).append(FakeResponse(body, status))

    def add_route(self, verb: str, suffix: str, payload: Any, status: int = 200):
        self._routes.setdefault((verb, suffix), []).append(FakeResponse(payload, status))

    def rpc_calls(self, method: str) -> List[Dict[str, Any]]:
        return [r["json"] for r in self.requests if r["json"] and r["json"].get("method") == method]

    @staticmethod
    def _next(queue: List[FakeResponse]) -> FakeResponse:
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def post(self, url: str, json: Any = None, **kwargs):
        self.requests.append({"verb": "POST", "url": url, "json": json, "params": None})
        if isinstance(json, dict) and "method" in json:
            return self._next(self._rpc[json["method"]])
        return self._route("POST", url)

    def get(self, url: str, params: Any = None, **kwargs):
        self.requests.append({"verb": "GET", "url": url, "json": None, "params": params})
        return self._route("GET", url)

    def _route(self, verb: str, url: str) -> FakeResponse:
        for (route_verb, suffix), queue in self._routes.items():
            if route_verb == verb and url.endswith(suffix):
                return self._next(queue)
        raise AssertionError(f"unexpected {verb} {url}")

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_session():
    return FakeSession()
