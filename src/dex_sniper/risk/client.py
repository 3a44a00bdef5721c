"""
Risk-report service client.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp
from pydantic import ValidationError

from dex_sniper.core.retry import Ok, Outcome, RetryableRequest, RetryPolicy, Terminal
from dex_sniper.ingestion.client import ApiError, BaseApiClient, classify_api_error

from .models import RiskConfig, RiskReport

logger = logging.getLogger(__name__)


class RiskReportClient(BaseApiClient):
    """
    Fetches a fresh RiskReport for a mint.

    A fetch failure is final for the candidate: one attempt, no retries.
    """

    def __init__(
        self,
        config: Optional[RiskConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._config = config or RiskConfig()
        super().__init__(
            session=session,
            timeout=self._config.request_timeout,
            default_headers={"accept": "application/json", **self._config.extra_headers},
        )

    async def get_report(self, mint: str) -> Optional[RiskReport]:
        url = f"{self._config.base_url}/v1/tokens/{mint}/report"

        async def fetch() -> Outcome:
            try:
                data = await self._request("GET", url)
            except (ApiError, asyncio.TimeoutError, aiohttp.ClientError) as e:
                return classify_api_error(e)

            if not isinstance(data, dict) or not data:
                return Terminal("empty risk report")
            try:
                return Ok(RiskReport.from_api(mint, data))
            except ValidationError as e:
                return Terminal(f"malformed risk report: {e.error_count()} errors")

        result = await RetryableRequest(
            RetryPolicy(max_attempts=1, retry_unexpected=False),
            name=f"risk report {mint[:8]}",
        ).execute(fetch)

        if not result.ok:
            logger.warning(f"Risk report unavailable for {mint}: {result.error}")
            return None
        return result.value
