"""
Price oracle client (Birdeye-compatible REST API).

Provides:
    - get_price(): current USD unit price for a mint
    - get_price_history(): USD unit prices for a mint over a time window
    - get_new_listings(): the newest token listings, used as a discovery source
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

import aiohttp

from dex_sniper.core.retry import (
    Ok,
    Outcome,
    RetryableRequest,
    RetryPolicy,
    Retryable,
    Terminal,
)

from .client import ApiError, BaseApiClient, classify_api_error
from .models import WSOL_MINT, PriceSample, TokenListing

logger = logging.getLogger(__name__)


@dataclass
class PriceOracleConfig:
    """Configuration for the price oracle client."""

    base_url: str = "https://public-api.birdeye.so"
    api_key: str = ""
    rate_limit_ms: int = 250  # pause after each price request
    timeout: float = 10.0
    persistent_policy: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=10)
    )


class PriceOracleClient(BaseApiClient):
    """
    Async client for token prices and new listings.

    A missing price is reported as None, never as zero.
    """

    def __init__(
        self,
        config: PriceOracleConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(
            session=session,
            timeout=config.timeout,
            default_headers={
                "accept": "application/json",
                "x-chain": "solana",
                "X-API-KEY": config.api_key,
            },
        )
        self._config = config

    async def get_price(
        self, mint: str, persistent: bool = False
    ) -> Optional[PriceSample]:
        """
        Fetch the current USD unit price for a mint.

        Args:
            mint: Token mint address
            persistent: Retry with the persistent budget instead of a single try

        Returns:
            PriceSample, or None if the oracle has no usable price
        """
        url = f"{self._config.base_url}/defi/price"

        async def fetch() -> Outcome:
            try:
                data = await self._request("GET", url, params={"address": mint})
            except (ApiError, asyncio.TimeoutError, aiohttp.ClientError) as e:
                return classify_api_error(e)

            price = _parse_price(data)
            if price is None:
                return Retryable(f"no price for {mint}")
            return Ok(price)

        policy = (
            self._config.persistent_policy
            if persistent
            else RetryPolicy(max_attempts=1)
        )
        result = await RetryableRequest(policy, name=f"price {mint[:8]}").execute(fetch)

        if self._config.rate_limit_ms > 0:
            await asyncio.sleep(self._config.rate_limit_ms / 1000)

        if not result.ok:
            logger.debug(f"Price unavailable for {mint}: {result.error}")
            return None
        return PriceSample(mint=mint, price_usd=result.value)

    async def get_sol_price(self) -> Optional[PriceSample]:
        """USD price of wrapped SOL."""
        return await self.get_price(WSOL_MINT, persistent=True)

    async def get_price_history(
        self,
        mint: str,
        time_from: int,
        time_to: int,
        interval: str = "1m",
    ) -> list[PriceSample]:
        """
        Fetch historical USD unit prices, oldest first.

        Args:
            mint: Token mint address
            time_from: Window start, unix seconds
            time_to: Window end, unix seconds
            interval: Oracle bucket size (1m, 5m, 1H, ...)

        Returns:
            One PriceSample per bucket with a usable price; empty on failure
        """
        url = f"{self._config.base_url}/defi/history_price"
        params = {
            "address": mint,
            "address_type": "token",
            "type": interval,
            "time_from": str(time_from),
            "time_to": str(time_to),
        }

        try:
            data = await self._request("GET", url, params=params)
        except (ApiError, asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.warning(f"Price history unavailable for {mint}: {e}")
            return []
        finally:
            if self._config.rate_limit_ms > 0:
                await asyncio.sleep(self._config.rate_limit_ms / 1000)

        payload = data.get("data") if isinstance(data, dict) else None
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            return []

        samples = []
        for item in items:
            if not isinstance(item, dict):
                continue
            price = _parse_price({"data": {"value": item.get("value")}})
            unix_time = item.get("unixTime")
            if price is None or not isinstance(unix_time, int):
                continue
            samples.append(
                PriceSample(
                    mint=mint,
                    price_usd=price,
                    sampled_at=datetime.fromtimestamp(unix_time, tz=timezone.utc),
                )
            )
        samples.sort(key=lambda s: s.sampled_at)
        return samples

    async def get_new_listings(
        self,
        limit: int = 3,
        meme_platform_enabled: bool = False,
        min_age_seconds: int = 0,
    ) -> list[TokenListing]:
        """
        Fetch the newest token listings at least min_age_seconds old.

        Returns an empty list on any failure; the caller polls again later.
        """
        url = f"{self._config.base_url}/defi/v2/tokens/new_listing"
        params = {
            "time_to": str(int(time.time()) - min_age_seconds),
            "limit": str(limit),
            "meme_platform_enabled": "true" if meme_platform_enabled else "false",
        }

        async def fetch() -> Outcome:
            try:
                data = await self._request("GET", url, params=params)
            except (ApiError, asyncio.TimeoutError, aiohttp.ClientError) as e:
                return classify_api_error(e)

            payload = data.get("data") if isinstance(data, dict) else None
            items = payload.get("items") if isinstance(payload, dict) else None
            if not isinstance(items, list):
                return Terminal("new listing response has no items")
            return Ok(items)

        result = await RetryableRequest(
            RetryPolicy(max_attempts=3), name="new listings"
        ).execute(fetch)

        if not result.ok:
            logger.warning(f"Failed to fetch new listings: {result.error}")
            return []

        listings = []
        for item in result.value:
            if not isinstance(item, dict) or not item.get("address"):
                continue
            listings.append(
                TokenListing(
                    address=item["address"],
                    symbol=item.get("symbol"),
                    name=item.get("name"),
                )
            )
        return listings


def _parse_price(data) -> Optional[Decimal]:
    if not isinstance(data, dict) or not data.get("success", True):
        return None
    payload = data.get("data")
    value = payload.get("value") if isinstance(payload, dict) else None
    if value is None or value == "":
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        return None
    if price <= 0:
        return None
    return price
