"""
Generic retrying-request pattern.

Every external call in the bot is wrapped in a RetryableRequest. The
operation reports its outcome explicitly instead of raising:

    Ok(value)          - success, stop
    Retryable(error)   - transient failure, try again if budget remains
    Terminal(error)    - permanent failure, stop now

Delay after the n-th failed attempt (n >= 1):

    min(base_delay * multiplier ** n, max_delay)

A fixed-delay budget (e.g. waiting for a token to become tradable) is the
same mechanism with multiplier = 1.0.

Usage:
    policy = RetryPolicy(max_attempts=10, initial_delay=3.0)

    async def fetch() -> Outcome:
        data = await client.get(...)
        if not data:
            return Retryable("not indexed yet")
        return Ok(data)

    result = await RetryableRequest(policy, name="tx details").execute(fetch)
    if result.ok:
        use(result.value)
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful attempt carrying the result value."""
    value: T


@dataclass(frozen=True)
class Retryable:
    """Transient failure; the attempt may be repeated."""
    error: str


@dataclass(frozen=True)
class Terminal:
    """Permanent failure; no further attempts are made."""
    error: str


Outcome = Union[Ok, Retryable, Terminal]
Operation = Callable[[], Awaitable[Outcome]]
SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass
class RetryPolicy:
    """Retry budget and backoff shape for one kind of request."""

    max_attempts: int = 3
    base_delay: float = 4.0  # seconds
    multiplier: float = 1.5
    max_delay: float = 15.0
    initial_delay: float = 0.0  # waited once before the first attempt
    retry_unexpected: bool = True  # raised exceptions count as Retryable

    def delay_for(self, failures: int) -> float:
        """Delay to wait after the given number of failed attempts."""
        return min(self.base_delay * (self.multiplier ** failures), self.max_delay)


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    """Final outcome of a RetryableRequest."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    attempts: int = 0
    exhausted: bool = False


class RetryableRequest:
    """
    Runs an operation under a RetryPolicy.

    Never raises for operation failures: the caller always receives a
    RetryResult. Cancellation propagates.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        name: str = "request",
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self.name = name
        self._sleep = sleep

    async def execute(self, operation: Operation) -> RetryResult:
        policy = self.policy

        if policy.initial_delay > 0:
            await self._sleep(policy.initial_delay)

        last_error: Optional[str] = None

        for attempt in range(1, policy.max_attempts + 1):
            outcome = await self._attempt(operation)

            if isinstance(outcome, Ok):
                return RetryResult(ok=True, value=outcome.value, attempts=attempt)

            last_error = outcome.error

            if isinstance(outcome, Terminal):
                logger.warning(f"{self.name} failed permanently: {last_error}")
                return RetryResult(ok=False, error=last_error, attempts=attempt)

            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                logger.info(
                    f"{self.name} attempt {attempt}/{policy.max_attempts} failed "
                    f"({last_error}), retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        logger.warning(
            f"{self.name} gave up after {policy.max_attempts} attempts: {last_error}"
        )
        return RetryResult(
            ok=False,
            error=last_error,
            attempts=policy.max_attempts,
            exhausted=True,
        )

    async def _attempt(self, operation: Operation) -> Outcome:
        try:
            outcome = await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"{self.name} raised {type(e).__name__}: {e}")
            if self.policy.retry_unexpected:
                return Retryable(f"{type(e).__name__}: {e}")
            return Terminal(f"{type(e).__name__}: {e}")

        if not isinstance(outcome, (Ok, Retryable, Terminal)):
            return Terminal(f"unexpected outcome type {type(outcome).__name__}")
        return outcome

