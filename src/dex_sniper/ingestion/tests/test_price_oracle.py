"""
Tests for the price oracle client.

These tests verify:
- A missing or non-positive price is None, never zero
- Persistent lookups retry, plain lookups do not
- New-listing parsing skips malformed items
- The listing window ends min_age_seconds before now
"""
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from dex_sniper.ingestion.client import ApiError
from dex_sniper.ingestion.models import WSOL_MINT
from dex_sniper.ingestion.price_oracle import _parse_price


class TestParsePrice:
    """Tests for _parse_price."""

    def test_value(self):
        assert _parse_price({"success": True, "data": {"value": 0.00012345}}) == Decimal("0.00012345")

    @pytest.mark.parametrize(
        "payload",
        [
            {"success": True, "data": {"value": None}},
            {"success": True, "data": {"value": 0}},
            {"success": True, "data": {"value": -1.5}},
            {"success": True, "data": {}},
            {"success": True, "data": None},
            {"success": False, "message": "Not found"},
            {"success": True, "data": {"value": "not a number"}},
            None,
            [],
        ],
    )
    def test_missing_price_is_none(self, payload):
        assert _parse_price(payload) is None


class TestGetPrice:
    """Tests for PriceOracleClient.get_price."""

    @pytest.mark.asyncio
    async def test_returns_sample(self, oracle, token_mint):
        with patch.object(oracle, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"success": True, "data": {"value": 0.0005}}

            sample = await oracle.get_price(token_mint)

        assert sample.mint == token_mint
        assert sample.price_usd == Decimal("0.0005")
        assert mock_request.call_args[0] == ("GET", "https://oracle.test/defi/price")
        assert mock_request.call_args[1]["params"] == {"address": token_mint}

    @pytest.mark.asyncio
    async def test_single_attempt_by_default(self, oracle, token_mint):
        with patch.object(oracle, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"success": True, "data": {"value": None}}

            sample = await oracle.get_price(token_mint)

        assert sample is None
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_persistent_retries(self, oracle, token_mint):
        with patch.object(oracle, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [
                ApiError("busy", status_code=503),
                {"success": True, "data": {"value": None}},
                {"success": True, "data": {"value": "1.25"}},
            ]

            sample = await oracle.get_price(token_mint, persistent=True)

        assert sample.price_usd == Decimal("1.25")
        assert mock_request.call_count == 3

    @pytest.mark.asyncio
    async def test_sol_price_is_persistent(self, oracle):
        with patch.object(oracle, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [
                {"success": True, "data": {"value": None}},
                {"success": True, "data": {"value": 150.5}},
            ]

            sample = await oracle.get_sol_price()

        assert sample.mint == WSOL_MINT
        assert sample.price_usd == Decimal("150.5")

    def test_sends_chain_and_key_headers(self, oracle):
        assert oracle._default_headers["x-chain"] == "solana"
        assert oracle._default_headers["X-API-KEY"] == "test-key"


class TestNewListings:
    """Tests for PriceOracleClient.get_new_listings."""

    @pytest.mark.asyncio
    async def test_parses_items(self, oracle):
        response = {
            "success": True,
            "data": {
                "items": [
                    {"address": "MintA", "symbol": "AAA", "name": "Token A", "liquidity": 1200},
                    {"symbol": "NOADDR"},
                    "garbage",
                    {"address": "MintB", "symbol": "BBB", "name": "Token B"},
                ]
            },
        }
        with patch.object(oracle, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response

            listings = await oracle.get_new_listings(limit=3)

        assert [item.address for item in listings] == ["MintA", "MintB"]
        assert listings[0].symbol == "AAA"
        assert listings[1].name == "Token B"
        params = mock_request.call_args[1]["params"]
        assert params["limit"] == "3"
        assert params["meme_platform_enabled"] == "false"

    @pytest.mark.asyncio
    async def test_min_age_shifts_window(self, oracle):
        with patch.object(oracle, "_request", new_callable=AsyncMock) as mock_request, \
                patch("dex_sniper.ingestion.price_oracle.time.time", return_value=1718000000.5):
            mock_request.return_value = {"success": True, "data": {"items": []}}

            await oracle.get_new_listings()
            await oracle.get_new_listings(min_age_seconds=300)

        first, second = (call[1]["params"]["time_to"] for call in mock_request.call_args_list)
        assert first == "1718000000"
        assert second == "1717999700"

    @pytest.mark.asyncio
    async def test_failure_returns_empty_list(self, oracle):
        with patch.object(oracle, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = ApiError("unauthorized", status_code=401)

            listings = await oracle.get_new_listings()

        assert listings == []
        assert mock_request.call_count == 1


class TestPriceHistory:
    """Tests for PriceOracleClient.get_price_history."""

    @pytest.mark.asyncio
    async def test_parses_samples_oldest_first(self, oracle, token_mint):
        response = {
            "success": True,
            "data": {
                "items": [
                    {"unixTime": 1718000120, "value": 0.0006},
                    {"unixTime": 1718000060, "value": 0.0005},
                    {"unixTime": 1718000180, "value": None},
                    {"value": 0.0007},
                ]
            },
        }
        with patch.object(oracle, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response

            samples = await oracle.get_price_history(token_mint, 1718000000, 1718000200)

        assert [s.price_usd for s in samples] == [Decimal("0.0005"), Decimal("0.0006")]
        assert samples[0].sampled_at.timestamp() == 1718000060
        params = mock_request.call_args[1]["params"]
        assert params["address"] == token_mint
        assert params["type"] == "1m"
        assert params["time_from"] == "1718000000"

    @pytest.mark.asyncio
    async def test_failure_returns_empty_list(self, oracle, token_mint):
        with patch.object(oracle, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = ApiError("server error", status_code=500)

            assert await oracle.get_price_history(token_mint, 0, 60) == []
