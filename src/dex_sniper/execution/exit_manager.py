"""
Exit Manager for stop-loss / take-profit execution.

Runs a fixed-interval valuation loop over the position ledger:

    unrealized_pnl = (price - per_token_paid) * balance
    pnl_percent    = unrealized_pnl / (per_token_paid * balance) * 100

Take-profit fires at pnl_percent >= take_profit_percent, stop-loss at
pnl_percent <= -stop_loss_percent (both boundaries inclusive). Either
threshold is disabled by setting it to -1.

A cycle in which any held mint has no price is abandoned entirely: no
partial valuation, no sells.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Tuple

from dex_sniper.ingestion.models import PriceSample
from dex_sniper.storage.models import Position

from .models import SwapOutcome
from .position_ledger import LedgerError, PositionLedger

if TYPE_CHECKING:
    from dex_sniper.ingestion.price_oracle import PriceOracleClient
    from .swap_executor import SwapExecutor

logger = logging.getLogger(__name__)

DISABLED = Decimal("-1")


@dataclass
class ExitConfig:
    """Configuration for exit triggers."""

    stop_loss_percent: Decimal = Decimal("20")  # -1 disables
    take_profit_percent: Decimal = Decimal("20")  # -1 disables
    auto_sell: bool = True
    interval: float = 1.0  # seconds between cycles
    price_request_delay: float = 1.05  # seconds between price calls


@dataclass(frozen=True)
class PositionValuation:
    """One position valued against one price sample."""

    position: Position
    sample: PriceSample
    unrealized_pnl: Decimal
    pnl_percent: Decimal

    @classmethod
    def compute(cls, position: Position, sample: PriceSample) -> "PositionValuation":
        cost = position.per_token_paid_usd * position.balance
        pnl = (sample.price_usd - position.per_token_paid_usd) * position.balance
        pct = pnl / cost * 100 if cost else Decimal("0")
        return cls(position=position, sample=sample, unrealized_pnl=pnl, pnl_percent=pct)


@dataclass
class CycleReport:
    """What one valuation cycle did."""

    aborted: bool = False
    valuations: Tuple[PositionValuation, ...] = ()
    exits_attempted: int = 0
    exits_confirmed: int = 0
    unrealized_pnl: Decimal = Decimal("0")


class ExitManager:
    """
    Evaluates open positions and sells on stop-loss / take-profit.

    Usage:
        manager = ExitManager(ledger, oracle, executor, ExitConfig())
        task = asyncio.create_task(manager.run())

        # or a single pass
        report = await manager.run_cycle()
    """

    def __init__(
        self,
        ledger: PositionLedger,
        oracle: "PriceOracleClient",
        executor: "SwapExecutor",
        config: Optional[ExitConfig] = None,
    ) -> None:
        self._ledger = ledger
        self._oracle = oracle
        self._executor = executor
        self._config = config or ExitConfig()

        self._stop_event = asyncio.Event()
        self._realized_pnl = Decimal("0")
        self._unrealized_pnl = Decimal("0")

    @property
    def realized_pnl(self) -> Decimal:
        """Realized P&L accumulated since process start."""
        return self._realized_pnl

    @property
    def unrealized_pnl(self) -> Decimal:
        """Unrealized P&L as of the last completed cycle."""
        return self._unrealized_pnl

    def evaluate_exit(self, valuation: PositionValuation) -> Tuple[bool, Optional[str]]:
        """
        Decide whether a valued position should be sold.

        Returns:
            (should_exit, reason) with reason "take_profit" or "stop_loss"
        """
        if not self._config.auto_sell:
            return False, None

        pct = valuation.pnl_percent
        take_profit = self._config.take_profit_percent
        stop_loss = self._config.stop_loss_percent

        if take_profit != DISABLED and pct >= take_profit:
            return True, "take_profit"

        if stop_loss != DISABLED and pct <= -stop_loss:
            return True, "stop_loss"

        return False, None

    async def run(self) -> None:
        """Run cycles until stop() is called."""
        self._stop_event.clear()
        logger.info(
            f"Exit manager started (TP={self._config.take_profit_percent}%, "
            f"SL={self._config.stop_loss_percent}%, auto_sell={self._config.auto_sell})"
        )

        while not self._stop_event.is_set():
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in exit cycle: {e}")

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._config.interval,
                )
            except asyncio.TimeoutError:
                continue

        logger.info("Exit manager stopped")

    async def stop(self) -> None:
        self._stop_event.set()

    async def run_cycle(self) -> CycleReport:
        """Value every open position once and sell those that hit a trigger."""
        try:
            positions = await self._ledger.list_open()
        except LedgerError as e:
            logger.warning(f"Skipping exit cycle: {e}")
            return CycleReport(aborted=True)

        if not positions:
            self._unrealized_pnl = Decimal("0")
            return CycleReport()

        prices = await self._fetch_prices(positions)
        if prices is None:
            return CycleReport(aborted=True)

        valuations = tuple(
            PositionValuation.compute(p, prices[p.token_mint]) for p in positions
        )
        report = CycleReport(valuations=valuations)
        report.unrealized_pnl = sum(
            (v.unrealized_pnl for v in valuations), Decimal("0")
        )
        self._unrealized_pnl = report.unrealized_pnl

        for valuation in valuations:
            should_exit, reason = self.evaluate_exit(valuation)
            if not should_exit:
                continue

            report.exits_attempted += 1
            if await self.execute_exit(valuation, reason):
                report.exits_confirmed += 1

        self._log_holdings(valuations)
        return report

    async def execute_exit(self, valuation: PositionValuation, reason: str) -> bool:
        """Sell a triggered position. Realized P&L counts only confirmed sells."""
        position = valuation.position
        logger.info(
            f"{reason} triggered for {position.token_mint} ({position.token_name}) "
            f"at {valuation.pnl_percent:.2f}% ({valuation.unrealized_pnl:.2f}$)"
        )

        result = await self._executor.sell(position)

        if result.success:
            realized = valuation.unrealized_pnl - position.fee_usd
            self._realized_pnl += realized
            logger.info(
                f"Closed {position.token_mint} via {reason}: "
                f"realized {realized:.2f}$ (total {self._realized_pnl:.2f}$)"
            )
            return True

        if result.outcome == SwapOutcome.ALREADY_DISPOSED:
            logger.info(f"{position.token_mint} was already disposed of externally")
        else:
            logger.warning(f"Exit for {position.token_mint} failed: {result.error}")
        return False

    async def _fetch_prices(
        self, positions: list[Position]
    ) -> Optional[dict[str, PriceSample]]:
        """One sample per distinct mint, or None if any is missing."""
        prices: dict[str, PriceSample] = {}
        for index, position in enumerate(positions):
            mint = position.token_mint
            if mint in prices:
                continue
            if index > 0 and self._config.price_request_delay > 0:
                await asyncio.sleep(self._config.price_request_delay)

            sample = await self._oracle.get_price(mint)
            if sample is None:
                logger.warning(f"No price for {mint}, skipping this valuation cycle")
                return None
            prices[mint] = sample
        return prices

    def _log_holdings(self, valuations: Tuple[PositionValuation, ...]) -> None:
        for v in valuations:
            logger.info(
                f"Holding {v.position.token_name} ({v.position.token_mint}): "
                f"paid {v.position.paid_usd:.2f}$ price {v.sample.price_usd}$ "
                f"PnL {v.unrealized_pnl:.2f}$ ({v.pnl_percent:.2f}%)"
            )
        logger.info(
            f"Unrealized PnL {self._unrealized_pnl:.2f}$ | "
            f"Realized PnL {self._realized_pnl:.2f}$"
        )
