"""
Snipe pipeline: one discovery signal from resolution to buy.

    signal -> mint -> risk gate -> delay -> buy

Log-based sources (rpc, pumpfun) carry only a transaction signature and are
resolved through the transaction-details API. Listing signals already carry
the mint.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from dex_sniper.execution.models import SwapOutcome
from dex_sniper.ingestion.models import (
    CandidateSignal,
    DiscoverySource,
    TokenCandidate,
)

if TYPE_CHECKING:
    from dex_sniper.execution.swap_executor import SwapExecutor
    from dex_sniper.ingestion.transaction_details import TransactionDetailsClient
    from dex_sniper.risk.engine import RiskScoringEngine

logger = logging.getLogger(__name__)


class PipelineOutcome(str, Enum):
    RESOLVE_FAILED = "resolve_failed"
    IGNORED = "ignored"
    REJECTED = "rejected"
    BUY_FAILED = "buy_failed"
    BOUGHT = "bought"


@dataclass
class PipelineConfig:
    ignore_pump_fun: bool = False  # skip mints with the "pump" vanity suffix
    swap_initial_delay: float = 1.0  # seconds between acceptance and quote


@dataclass
class PipelineStats:
    processed: int = 0
    resolve_failed: int = 0
    ignored: int = 0
    rejected: int = 0
    buy_failed: int = 0
    bought: int = 0


class SnipePipeline:
    def __init__(
        self,
        tx_details: "TransactionDetailsClient",
        risk_engine: "RiskScoringEngine",
        executor: "SwapExecutor",
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._tx_details = tx_details
        self._risk_engine = risk_engine
        self._executor = executor
        self._config = config or PipelineConfig()
        self._sleep = sleep
        self._stats = PipelineStats()
        self._active: set[str] = set()

    @property
    def stats(self) -> PipelineStats:
        return self._stats

    async def process(self, signal: CandidateSignal) -> PipelineOutcome:
        """Run one signal through the pipeline and return where it ended."""
        outcome = await self._process(signal)
        self._stats.processed += 1
        setattr(self._stats, outcome.value, getattr(self._stats, outcome.value) + 1)
        return outcome

    async def _process(self, signal: CandidateSignal) -> PipelineOutcome:
        candidate = await self.resolve(signal)
        if candidate is None:
            logger.warning(f"No token found for {signal.source.value} signal {signal.signature}")
            return PipelineOutcome.RESOLVE_FAILED

        if self._config.ignore_pump_fun and candidate.mint.endswith("pump"):
            logger.info(f"Skipping pump.fun token {candidate.mint}")
            return PipelineOutcome.IGNORED

        if candidate.mint in self._active:
            logger.info(f"Already processing {candidate.mint}, skipping duplicate signal")
            return PipelineOutcome.IGNORED

        self._active.add(candidate.mint)
        try:
            return await self._evaluate_and_buy(candidate)
        finally:
            self._active.discard(candidate.mint)

    async def _evaluate_and_buy(self, candidate: TokenCandidate) -> PipelineOutcome:
        logger.info(f"Token found: https://gmgn.ai/sol/token/{candidate.mint}")

        decision = await self._risk_engine.evaluate(candidate.mint, candidate.source)
        if not decision.accept:
            logger.info(
                f"Rejected {candidate.mint}: " + "; ".join(decision.reasons)
            )
            return PipelineOutcome.REJECTED

        token_name = candidate.symbol
        decimals = None
        if decision.report is not None:
            token_name = decision.report.name or token_name
            decimals = decision.report.token.decimals

        if self._config.swap_initial_delay > 0:
            await self._sleep(self._config.swap_initial_delay)

        result = await self._executor.buy(candidate, token_name=token_name, decimals=decimals)
        if result.outcome == SwapOutcome.ALREADY_HELD:
            return PipelineOutcome.IGNORED
        if not result.success:
            logger.warning(
                f"Buy failed for {candidate.mint} at "
                f"{result.failed_stage.value if result.failed_stage else 'unknown'}: "
                f"{result.error}"
            )
            return PipelineOutcome.BUY_FAILED

        return PipelineOutcome.BOUGHT

    async def resolve(self, signal: CandidateSignal) -> Optional[TokenCandidate]:
        """Turn a signal into a candidate mint, or None if it can't be resolved."""
        if signal.mint:
            return TokenCandidate(
                mint=signal.mint,
                source=signal.source,
                symbol=signal.symbol,
                signature=signal.signature,
            )

        if not signal.signature:
            return None

        if signal.source == DiscoverySource.RPC:
            mint = await self._tx_details.fetch_pool_mint(signal.signature)
        elif signal.source == DiscoverySource.PUMPFUN:
            mint = await self._tx_details.fetch_migrated_mint(signal.signature)
        else:
            mint = None

        if not mint:
            return None

        return TokenCandidate(
            mint=mint,
            source=signal.source,
            symbol=signal.symbol,
            signature=signal.signature,
        )
