"""
Core Layer - Retry pattern and signal dispatch.

This module provides:
    - RetryableRequest: Generic retrying wrapper over outcome-returning operations
    - RetryPolicy: Attempt budget and capped exponential backoff
    - Ok, Retryable, Terminal: Per-attempt outcomes
    - Dispatcher: Bounded-concurrency admission of discovery signals
    - DispatcherConfig: Concurrency ceiling

The snipe pipeline lives in dex_sniper.core.pipeline and is imported from
there directly, since it depends on the ingestion, risk and execution layers.
"""

from .dispatcher import Dispatcher, DispatcherConfig
from .retry import Ok, Outcome, Retryable, RetryableRequest, RetryPolicy, RetryResult, Terminal

__all__ = [
    "Dispatcher",
    "DispatcherConfig",
    "Ok",
    "Outcome",
    "Retryable",
    "RetryableRequest",
    "RetryPolicy",
    "RetryResult",
    "Terminal",
]
