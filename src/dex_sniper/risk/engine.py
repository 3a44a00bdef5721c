"""
Risk scoring engine.

Screens a candidate mint with a fresh third-party risk report and a set of
configurable rules. All report conditions are evaluated so that every
rejection reason is reported, not just the first.

Gate order:
    1. Fetch report (failure rejects)
    2. Optionally drop liquidity-pool accounts from the top-holder list
    3. Report conditions (non-short-circuiting)
    4. Duplicate name + creator check
    5. Price band, for sources whose tokens already have a live price
    6. Record the accepted token for future duplicate checks
"""
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Optional

from dex_sniper.ingestion.models import DiscoverySource
from dex_sniper.storage.models import SeenToken

from .client import RiskReportClient
from .models import RiskConfig, RiskDecision, RiskReport

if TYPE_CHECKING:
    from dex_sniper.ingestion.price_oracle import PriceOracleClient
    from dex_sniper.storage.repositories import TokenRepository

logger = logging.getLogger(__name__)


class RiskScoringEngine:
    """
    Accept/reject gate for candidate tokens.

    Usage:
        engine = RiskScoringEngine(RiskReportClient(config), token_repo, oracle, config)
        decision = await engine.evaluate(mint, DiscoverySource.RPC)
        if not decision.accept:
            print(decision.reasons)
    """

    def __init__(
        self,
        client: RiskReportClient,
        token_repo: Optional["TokenRepository"] = None,
        oracle: Optional["PriceOracleClient"] = None,
        config: Optional[RiskConfig] = None,
    ):
        self._client = client
        self._token_repo = token_repo
        self._oracle = oracle
        self._config = config or RiskConfig()

    @property
    def config(self) -> RiskConfig:
        return self._config

    async def evaluate(self, mint: str, source: DiscoverySource) -> RiskDecision:
        report = await self._client.get_report(mint)
        if report is None:
            return RiskDecision.rejected("Risk report unavailable")

        reasons = self.evaluate_report(report, source)

        if await self._is_returning_name(report):
            reasons.append(
                f"Token name '{report.name}' was already launched by this creator"
            )

        if not reasons and source.value in self._config.price_check_sources:
            price_reason = await self._check_price_band(mint)
            if price_reason:
                reasons.append(price_reason)

        if reasons:
            for reason in reasons:
                logger.info(f"Rejected {mint}: {reason}")
            return RiskDecision(accept=False, reasons=tuple(reasons), report=report)

        await self._record_token(report)
        logger.info(f"Risk checks passed for {mint} ({report.name or 'unnamed'})")
        return RiskDecision(accept=True, report=report)

    def evaluate_report(self, report: RiskReport, source: DiscoverySource) -> list[str]:
        """
        Apply the report conditions in order.

        Pure and deterministic: the same report and config always yield the
        same reasons.
        """
        config = self._config
        reasons: list[str] = []

        holders = report.top_holders
        if config.exclude_lp_from_topholders:
            lp_accounts = report.liquidity_addresses
            holders = tuple(h for h in holders if h.address not in lp_accounts)

        if not config.allow_mint_authority and report.token.mint_authority is not None:
            reasons.append("Mint authority should be null")

        if not config.allow_not_initialized and not report.token.is_initialized:
            reasons.append("Token is not initialized")

        if not config.allow_freeze_authority and report.token.freeze_authority is not None:
            reasons.append("Freeze authority should be null")

        if any(h.pct > config.max_allowed_pct_topholders for h in holders):
            reasons.append(
                f"A top holder holds more than {config.max_allowed_pct_topholders}% of supply"
            )

        if not config.allow_insider_topholders and any(h.insider for h in holders):
            reasons.append("Insider accounts are among the top holders")

        if (
            report.total_lp_providers < config.min_total_lp_providers
            and source.value not in config.lp_check_exempt_sources
        ):
            reasons.append("Not enough LP providers or not bonded")

        if len(report.markets) < config.min_total_markets:
            reasons.append("Not enough markets")

        liquidity = report.total_market_liquidity
        if (
            liquidity < config.min_total_market_liquidity
            or liquidity > config.max_total_market_liquidity
        ):
            reasons.append(f"Market liquidity not within limits: {liquidity}")

        if report.score > config.max_rug_score or report.score < config.min_rug_score:
            reasons.append(f"Rug score not within limits: {report.score}")

        legacy = set(config.legacy_not_allowed)
        flagged = [risk.name for risk in report.risks if risk.name in legacy]
        if flagged:
            reasons.append(f"Token has legacy risks that are not allowed: {', '.join(flagged)}")

        return reasons

    async def _is_returning_name(self, report: RiskReport) -> bool:
        if not self._config.block_returning_token_names or self._token_repo is None:
            return False
        try:
            duplicates = await self._token_repo.get_by_name_and_creator(
                report.name, report.creator_or_mint
            )
        except Exception as e:
            logger.warning(f"Duplicate-name lookup failed for {report.mint}: {e}")
            return False
        return any(token.name == report.name for token in duplicates)

    async def _check_price_band(self, mint: str) -> Optional[str]:
        if self._oracle is None:
            return None

        sample = await self._oracle.get_price(mint, persistent=True)
        if sample is None:
            return "Token price unavailable"

        price = sample.price_usd
        if price < self._config.min_token_price or price > self._config.max_token_price:
            return f"Token price not within limits: {price}"
        return None

    async def _record_token(self, report: RiskReport) -> None:
        """Best-effort insert into the seen-token table."""
        if self._token_repo is None:
            return

        try:
            await self._token_repo.create(
                SeenToken(
                    seen_at=int(time.time() * 1000),
                    mint=report.mint,
                    name=report.name,
                    creator=report.creator_or_mint,
                )
            )
        except Exception as e:
            logger.warning(f"Could not record seen token {report.mint}: {e}")
