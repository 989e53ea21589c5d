"""
Tests for the buyback actor.

The swap pipeline is exercised against mocked RPC, Jupiter and wallet
collaborators; no network or real key material is involved.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from buyback.actor import BuybackActor
from buyback.jupiter import SOL_MINT, JupiterError, SwapQuote
from buyback.rpc import RpcError, RpcTimeoutError
from tests.conftest import TOKEN_MINT

BUYER = "BuyerWa11et1111111111111111111111111111111"


def _quote(out_amount: int = 1_234_500_000) -> SwapQuote:
    return SwapQuote(
        input_mint=SOL_MINT,
        output_mint=TOKEN_MINT,
        input_amount=10_000_000,
        output_amount=out_amount,
        slippage_bps=100,
        quote_response={"outAmount": str(out_amount)},
    )


@pytest.fixture
def jupiter():
    client = AsyncMock()
    client.get_quote.return_value = _quote()
    client.get_swap_transaction.return_value = b"unsigned-tx"
    return client


@pytest.fixture
def wallet():
    w = MagicMock()
    w.address = BUYER
    w.sign_transaction.return_value = b"signed-tx"
    return w


@pytest.fixture
def actor(actor_config, mock_rpc, jupiter, wallet):
    mock_rpc.get_balance.return_value = 1_000_000_000
    mock_rpc.send_transaction.return_value = "5SwapSignature111"
    mock_rpc.confirm_transaction.return_value = "confirmed"
    return BuybackActor(config=actor_config, rpc=mock_rpc, jupiter=jupiter, wallet=wallet)


class TestBalanceGate:
    """Tests for the minimum balance check."""

    @pytest.mark.asyncio
    async def test_insufficient_balance_skips(self, actor, mock_rpc, jupiter):
        """0.012 SOL is below 0.01 + 0.005 reserve, so nothing is attempted."""
        mock_rpc.get_balance.return_value = 12_000_000
        events = []

        emitted = await actor.run_cycle(events.append)

        assert emitted == 0
        assert events == []
        jupiter.get_quote.assert_not_awaited()
        mock_rpc.send_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exact_minimum_proceeds(self, actor, mock_rpc):
        mock_rpc.get_balance.return_value = 15_000_000
        events = []

        emitted = await actor.run_cycle(events.append)

        assert emitted == 1

    @pytest.mark.asyncio
    async def test_balance_error_propagates(self, actor, mock_rpc, jupiter):
        mock_rpc.get_balance.side_effect = RpcError("RPC unreachable")

        with pytest.raises(RpcError):
            await actor.run_cycle(lambda e: None)
        jupiter.get_quote.assert_not_awaited()


class TestExecuteBuyback:
    """Tests for the quote, swap, sign, send, confirm pipeline."""

    @pytest.mark.asyncio
    async def test_successful_buyback_emits_event(self, actor, mock_rpc, jupiter, wallet):
        events = []

        emitted = await actor.run_cycle(events.append)

        assert emitted == 1
        event = events[0]
        assert event.transaction_id == "5SwapSignature111"
        assert event.sol_spent == Decimal("0.01")
        assert event.tokens_received == Decimal("1234.5")

        jupiter.get_quote.assert_awaited_once_with(
            input_mint=SOL_MINT,
            output_mint=TOKEN_MINT,
            amount=10_000_000,
            slippage_bps=100,
        )
        jupiter.get_swap_transaction.assert_awaited_once()
        assert jupiter.get_swap_transaction.await_args.args[1] == BUYER
        wallet.sign_transaction.assert_called_once_with(b"unsigned-tx")
        mock_rpc.send_transaction.assert_awaited_once_with(
            b"signed-tx", skip_preflight=False, max_retries=3
        )
        mock_rpc.confirm_transaction.assert_awaited_once_with(
            "5SwapSignature111", commitment="confirmed"
        )

    @pytest.mark.asyncio
    async def test_quote_failure_emits_nothing(self, actor, jupiter, mock_rpc):
        jupiter.get_quote.side_effect = JupiterError("Quote failed: No route found")
        events = []

        with pytest.raises(JupiterError):
            await actor.run_cycle(events.append)

        assert events == []
        jupiter.get_swap_transaction.assert_not_awaited()
        mock_rpc.send_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfirmed_send_not_counted(self, actor, mock_rpc):
        mock_rpc.confirm_transaction.side_effect = RpcTimeoutError("not confirmed within 30s")
        events = []

        with pytest.raises(RpcTimeoutError):
            await actor.run_cycle(events.append)

        mock_rpc.send_transaction.assert_awaited_once()
        assert events == []

    @pytest.mark.asyncio
    async def test_custom_decimals_scale_quote(self, actor_config, mock_rpc, jupiter, wallet):
        actor_config.token_decimals = 9
        mock_rpc.get_balance.return_value = 1_000_000_000
        mock_rpc.send_transaction.return_value = "sig"
        jupiter.get_quote.return_value = _quote(out_amount=2_500_000_000)
        actor = BuybackActor(config=actor_config, rpc=mock_rpc, jupiter=jupiter, wallet=wallet)

        event = await actor.execute_buyback()

        assert event.tokens_received == Decimal("2.5")


class TestActorLifecycle:
    """Tests for identity and cleanup."""

    def test_wallet_address_and_warmup(self, actor):
        assert actor.wallet_address == BUYER
        assert actor.initial_delay == 5.0

    @pytest.mark.asyncio
    async def test_close_releases_clients(self, actor, mock_rpc, jupiter):
        await actor.close()
        jupiter.close.assert_awaited_once()
        mock_rpc.close.assert_awaited_once()
