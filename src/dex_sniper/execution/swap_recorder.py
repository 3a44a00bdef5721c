"""
Turns a confirmed buy into a ledger Position.

Live buys are valued from the confirmed swap event; simulated buys from the
quote. USD figures use the oracle's SOL price at recording time.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from dex_sniper.ingestion.models import SwapEventDetails, TokenAmount
from dex_sniper.storage.models import Position

from .models import SwapResult
from .position_ledger import LedgerError, PositionLedger

if TYPE_CHECKING:
    from dex_sniper.ingestion.price_oracle import PriceOracleClient
    from dex_sniper.ingestion.transaction_details import TransactionDetailsClient
    from dex_sniper.storage.repositories import TokenRepository

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = Decimal(1_000_000_000)


@dataclass
class RecorderConfig:
    simulated_fee_sol: Decimal = Decimal("0")


@dataclass(frozen=True)
class SwapFill:
    """Amounts actually exchanged by a buy."""
    sol_paid: Decimal
    tokens_received: Decimal
    raw_received: Optional[int]
    decimals: Optional[int]
    fee_lamports: Decimal
    slot: int
    timestamp_ms: int
    program: str


class SwapRecorder:
    def __init__(
        self,
        oracle: "PriceOracleClient",
        ledger: PositionLedger,
        tx_details: Optional["TransactionDetailsClient"] = None,
        token_repo: Optional["TokenRepository"] = None,
        config: Optional[RecorderConfig] = None,
    ):
        self._oracle = oracle
        self._ledger = ledger
        self._tx_details = tx_details
        self._token_repo = token_repo
        self._config = config or RecorderConfig()

    async def record_buy(
        self,
        result: SwapResult,
        token_name: Optional[str] = None,
        decimals: Optional[int] = None,
    ) -> Optional[Position]:
        """
        Build and insert the Position for a confirmed buy.

        Failures are logged, never raised: the buy already happened and the
        operator has to track it manually.
        """
        mint = result.mint

        sol_sample = await self._oracle.get_sol_price()
        if sol_sample is None:
            logger.error(f"No SOL price, {mint} not saved for tracking. Track manually!")
            return None
        sol_price = sol_sample.price_usd

        if result.submitted is not None and result.submitted.simulated:
            fill = await self._simulated_fill(result, decimals, sol_price)
        else:
            fill = await self._chain_fill(result)

        if fill is None or fill.tokens_received <= 0:
            logger.error(f"No swap details for {mint}, not saved for tracking. Track manually!")
            return None

        paid_usd = fill.sol_paid * sol_price
        fee_usd = fill.fee_lamports / LAMPORTS_PER_SOL * sol_price

        position = Position(
            token_mint=mint,
            opened_at=fill.timestamp_ms,
            token_name=await self._resolve_name(mint, token_name),
            balance=fill.tokens_received,
            decimals=fill.decimals if fill.decimals is not None else decimals,
            raw_amount=fill.raw_received,
            sol_paid=fill.sol_paid,
            sol_fee_paid=fill.fee_lamports,
            paid_usd=paid_usd,
            fee_usd=fee_usd,
            per_token_paid_usd=paid_usd / fill.tokens_received,
            slot=fill.slot,
            program=fill.program,
        )

        try:
            await self._ledger.insert(position)
        except LedgerError as e:
            logger.error(f"{e}. {mint} not saved for tracking. Track manually!")
            return None

        logger.info(
            f"New holding: {mint} - {position.token_name} - "
            f"{paid_usd:.2f}$ (fee {fee_usd:.4f}$) at {position.per_token_paid_usd}$"
        )
        return position

    async def _chain_fill(self, result: SwapResult) -> Optional[SwapFill]:
        if self._tx_details is None or not result.signature:
            return None

        details = await self._tx_details.fetch_swap_details(result.signature)
        if details is None:
            return None

        output = _output_for(details, result.mint)
        if output is None:
            return None

        received = output.amount
        if output.raw_amount is not None and output.decimals is not None:
            received = Decimal(output.raw_amount).scaleb(-output.decimals)

        return SwapFill(
            sol_paid=details.token_inputs[0].amount,
            tokens_received=received,
            raw_received=output.raw_amount,
            decimals=output.decimals,
            fee_lamports=Decimal(details.fee_lamports),
            slot=details.slot,
            timestamp_ms=details.timestamp * 1000 if details.timestamp else _now_ms(),
            program=details.program_source,
        )

    async def _simulated_fill(
        self, result: SwapResult, decimals: Optional[int], sol_price: Decimal
    ) -> Optional[SwapFill]:
        quote = result.quote
        if quote is None:
            return None

        sol_paid = Decimal(quote.in_amount) / LAMPORTS_PER_SOL

        if decimals is not None:
            tokens = Decimal(quote.out_amount).scaleb(-decimals)
        else:
            token_sample = await self._oracle.get_price(result.mint, persistent=True)
            if token_sample is None:
                return None
            tokens = sol_paid * sol_price / token_sample.price_usd

        return SwapFill(
            sol_paid=sol_paid,
            tokens_received=tokens,
            raw_received=quote.out_amount,
            decimals=decimals,
            fee_lamports=self._config.simulated_fee_sol * LAMPORTS_PER_SOL,
            slot=0,
            timestamp_ms=_now_ms(),
            program="simulation",
        )

    async def _resolve_name(self, mint: str, token_name: Optional[str]) -> str:
        if token_name:
            return token_name
        if self._token_repo is None:
            return "N/A"
        try:
            seen = await self._token_repo.get_by_mint(mint)
        except Exception as e:
            logger.debug(f"Token name lookup failed for {mint}: {e}")
            return "N/A"
        return seen.name if seen and seen.name else "N/A"


def _output_for(details: SwapEventDetails, mint: str) -> Optional[TokenAmount]:
    for output in details.token_outputs:
        if output.mint == mint:
            return output
    return None


def _now_ms() -> int:
    return int(time.time() * 1000)
