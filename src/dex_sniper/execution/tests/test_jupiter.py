"""
Tests for the swap aggregator client.

These tests verify:
- Quotes retry only while the token is not tradable yet
- Every other quote failure is final
- The swap request carries priority-fee and slippage settings
"""
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from dex_sniper.execution.jupiter import JupiterClient, JupiterConfig
from dex_sniper.ingestion.client import ApiError
from dex_sniper.ingestion.models import WSOL_MINT


MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"

QUOTE = {
    "inputMint": WSOL_MINT,
    "outputMint": MINT,
    "inAmount": "200000000",
    "outAmount": "153827123456",
    "slippageBps": 1000,
}


def not_tradable():
    return ApiError(
        "bad request",
        status_code=400,
        payload={"error": "not tradable", "errorCode": "TOKEN_NOT_TRADABLE"},
    )


@pytest.fixture
def jupiter():
    return JupiterClient(JupiterConfig(not_tradable_delay=0), session=MagicMock())


class TestGetQuote:
    """Tests for JupiterClient.get_quote."""

    @pytest.mark.asyncio
    async def test_returns_quote(self, jupiter):
        with patch.object(jupiter, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = QUOTE

            result = await jupiter.get_quote(WSOL_MINT, MINT, 200_000_000, 1000)

        assert result.ok
        assert result.attempts == 1
        assert result.value.out_amount == 153827123456
        assert result.value.route == QUOTE
        assert mock_request.call_args[1]["params"] == {
            "inputMint": WSOL_MINT,
            "outputMint": MINT,
            "amount": "200000000",
            "slippageBps": "1000",
        }

    @pytest.mark.asyncio
    async def test_not_tradable_is_retried(self, jupiter):
        with patch.object(jupiter, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [not_tradable(), not_tradable(), QUOTE]

            result = await jupiter.get_quote(WSOL_MINT, MINT, 200_000_000, 1000)

        assert result.ok
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_not_tradable_gives_up_after_budget(self, jupiter):
        with patch.object(jupiter, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = not_tradable()

            result = await jupiter.get_quote(WSOL_MINT, MINT, 200_000_000, 1000)

        assert not result.ok
        assert result.exhausted
        assert mock_request.call_count == 5

    @pytest.mark.asyncio
    async def test_other_bad_request_is_final(self, jupiter):
        with patch.object(jupiter, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = ApiError(
                "bad request", status_code=400, payload={"errorCode": "COULD_NOT_FIND_ANY_ROUTE"}
            )

            result = await jupiter.get_quote(WSOL_MINT, MINT, 200_000_000, 1000)

        assert not result.ok
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure",
        [ApiError("server error", status_code=500), aiohttp.ClientConnectionError("reset")],
    )
    async def test_server_and_transport_errors_are_final(self, jupiter, failure):
        with patch.object(jupiter, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = failure

            result = await jupiter.get_quote(WSOL_MINT, MINT, 200_000_000, 1000)

        assert not result.ok
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_response_without_out_amount(self, jupiter):
        with patch.object(jupiter, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"error": "no route"}

            result = await jupiter.get_quote(WSOL_MINT, MINT, 200_000_000, 1000)

        assert not result.ok
        assert "outAmount" in result.error


class TestBuildSwap:
    """Tests for JupiterClient.build_swap."""

    @pytest.mark.asyncio
    async def test_request_body(self, jupiter, buy_quote):
        with patch.object(jupiter, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"swapTransaction": "AQID"}

            transaction = await jupiter.build_swap(buy_quote, "Wallet111")

        assert transaction == "AQID"
        body = mock_request.call_args[1]["json"]
        assert body["quoteResponse"] is buy_quote.route
        assert body["userPublicKey"] == "Wallet111"
        assert body["wrapAndUnwrapSol"] is True
        assert body["dynamicSlippage"] == {"maxBps": 300}
        assert body["prioritizationFeeLamports"] == {
            "priorityLevelWithMaxLamports": {
                "maxLamports": 1_000_000,
                "priorityLevel": "veryHigh",
            }
        }

    @pytest.mark.asyncio
    async def test_missing_transaction(self, jupiter, buy_quote):
        with patch.object(jupiter, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"error": "failed"}

            assert await jupiter.build_swap(buy_quote, "Wallet111") is None

    @pytest.mark.asyncio
    async def test_request_failure(self, jupiter, buy_quote):
        with patch.object(jupiter, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = ApiError("server error", status_code=500)

            assert await jupiter.build_swap(buy_quote, "Wallet111") is None
        assert mock_request.call_count == 1
