"""
Shared async REST plumbing for the external HTTP services.

The price oracle, risk-report service, enhanced-transaction API and swap
aggregator clients all subclass BaseApiClient. Requests are single-shot:
retries belong to the caller's RetryableRequest, which uses
classify_api_error() to decide whether a failure is transient.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Optional, Union

import aiohttp

from dex_sniper.core.retry import Retryable, Terminal

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base exception for external API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class RateLimitError(ApiError):
    """Rate limit exceeded."""
    pass


class BaseApiClient:
    """
    Async REST client base with session ownership and rate limiting.

    Usage:
        async with PriceOracleClient(base_url, api_key) as oracle:
            sample = await oracle.get_price(mint)
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limit: float = 10.0,  # requests per second
        timeout: float = 10.0,
        default_headers: Optional[dict[str, str]] = None,
    ):
        """
        Initialize the REST client.

        Args:
            session: Optional aiohttp session (created if not provided)
            rate_limit: Maximum requests per second
            timeout: Total request timeout in seconds
            default_headers: Headers sent with every request
        """
        self._session = session
        self._owns_session = session is None
        self._rate_limit = rate_limit
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._default_headers = default_headers or {}

        self._request_times: list[float] = []
        self._rate_lock = asyncio.Lock()

    async def __aenter__(self) -> "BaseApiClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    async def _rate_limit_wait(self) -> None:
        """Wait if necessary to respect rate limits."""
        async with self._rate_lock:
            now = time.time()

            # Drop timestamps outside the 1-second window
            self._request_times = [t for t in self._request_times if now - t < 1.0]

            if len(self._request_times) >= self._rate_limit:
                wait_time = 1.0 - (now - self._request_times[0])
                if wait_time > 0:
                    await asyncio.sleep(wait_time)

            self._request_times.append(time.time())

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        """
        Make a single HTTP request and decode the JSON body.

        Raises:
            RateLimitError: HTTP 429
            ApiError: any other non-2xx status or an undecodable body
            asyncio.TimeoutError / aiohttp.ClientError: transport failures
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        headers = {**self._default_headers, **kwargs.pop("headers", {})}

        await self._rate_limit_wait()

        async with self._session.request(
            method, url, headers=headers, timeout=self._timeout, **kwargs
        ) as response:
            if response.status == 429:
                raise RateLimitError("Rate limit exceeded", status_code=429)

            if response.status >= 400:
                text = await response.text()
                raise ApiError(
                    f"API error: {response.status} - {text[:300]}",
                    status_code=response.status,
                    payload=_try_json(text),
                )

            try:
                return await response.json(content_type=None)
            except ValueError as e:
                raise ApiError(
                    f"Invalid JSON from {url}: {e}",
                    status_code=response.status,
                )


def _try_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def classify_api_error(error: Exception) -> Union[Retryable, Terminal]:
    """
    Map an HTTP failure to a retry outcome.

    Timeouts, connection problems, rate limiting and 5xx responses are
    transient. Other client errors are permanent.
    """
    if isinstance(error, ApiError):
        status = error.status_code
        if status is None or status == 429 or status >= 500:
            return Retryable(str(error))
        return Terminal(str(error))

    if isinstance(error, (asyncio.TimeoutError, aiohttp.ClientError)):
        return Retryable(f"{type(error).__name__}: {error}")

    return Terminal(f"{type(error).__name__}: {error}")
