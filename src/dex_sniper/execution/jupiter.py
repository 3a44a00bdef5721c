"""
Swap aggregator client (Jupiter v6-compatible quote and swap endpoints).

get_quote() retries only while the aggregator reports the token as not yet
tradable; every other quote error is final. build_swap() is single-shot.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from dex_sniper.core.retry import (
    Ok,
    Outcome,
    RetryableRequest,
    RetryPolicy,
    RetryResult,
    Retryable,
    Terminal,
)
from dex_sniper.ingestion.client import ApiError, BaseApiClient

from .models import SwapQuote

logger = logging.getLogger(__name__)

NOT_TRADABLE_ERROR = "TOKEN_NOT_TRADABLE"


@dataclass
class JupiterConfig:
    """Endpoints and fee settings for the swap aggregator."""

    quote_url: str = "https://quote-api.jup.ag/v6/quote"
    swap_url: str = "https://quote-api.jup.ag/v6/swap"
    timeout: float = 10.0
    not_tradable_retries: int = 5
    not_tradable_delay: float = 2.0  # fixed
    dynamic_slippage_max_bps: int = 300
    priority_fee_max_lamports: int = 1_000_000
    priority_level: str = "veryHigh"


class JupiterClient(BaseApiClient):
    """Quote and swap-transaction construction."""

    def __init__(
        self,
        config: Optional[JupiterConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._config = config or JupiterConfig()
        super().__init__(session=session, timeout=self._config.timeout)

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> RetryResult:
        """
        Request an executable quote.

        Returns:
            RetryResult whose value is a SwapQuote on success
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
        }

        async def fetch() -> Outcome:
            try:
                data = await self._request("GET", self._config.quote_url, params=params)
            except ApiError as e:
                if e.status_code == 400 and _error_code(e.payload) == NOT_TRADABLE_ERROR:
                    return Retryable("token not tradable yet")
                return Terminal(str(e))
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                return Terminal(f"{type(e).__name__}: {e}")

            if not isinstance(data, dict) or "outAmount" not in data:
                return Terminal("quote response has no outAmount")
            try:
                return Ok(SwapQuote.from_api(data))
            except (KeyError, TypeError, ValueError) as e:
                return Terminal(f"malformed quote: {e}")

        policy = RetryPolicy(
            max_attempts=self._config.not_tradable_retries,
            base_delay=self._config.not_tradable_delay,
            multiplier=1.0,
            max_delay=self._config.not_tradable_delay,
            retry_unexpected=False,
        )
        return await RetryableRequest(policy, name=f"quote {output_mint[:8]}").execute(fetch)

    async def build_swap(self, quote: SwapQuote, user_public_key: str) -> Optional[str]:
        """
        Serialize a quote into an unsigned swap transaction.

        Returns:
            Base64-encoded transaction, or None on any failure
        """
        body = {
            "quoteResponse": quote.route,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": True,
            "dynamicSlippage": {"maxBps": self._config.dynamic_slippage_max_bps},
            "prioritizationFeeLamports": {
                "priorityLevelWithMaxLamports": {
                    "maxLamports": self._config.priority_fee_max_lamports,
                    "priorityLevel": self._config.priority_level,
                },
            },
        }
        try:
            data = await self._request(
                "POST",
                self._config.swap_url,
                json=body,
                headers={"Content-Type": "application/json"},
            )
        except (ApiError, asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.error(f"Swap build failed: {e}")
            return None

        transaction = data.get("swapTransaction") if isinstance(data, dict) else None
        if not transaction:
            logger.error("Swap response has no swapTransaction")
            return None
        return transaction


def _error_code(payload) -> Optional[str]:
    if isinstance(payload, dict):
        return payload.get("errorCode")
    return None
