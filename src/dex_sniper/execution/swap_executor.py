"""
Swap executor.

Drives one buy or sell through

    QUOTE_REQUESTED -> QUOTE_RECEIVED -> TX_BUILT -> TX_SIGNED
        -> TX_SUBMITTED -> CONFIRMED | REJECTED

Any failure ends in REJECTED with the failing stage recorded. A submitted
transaction is never re-submitted, so no swap can execute twice.

Sells verify the wallet against the ledger first:
    - wallet balance zero      -> position removed, no swap (already disposed)
    - wallet != ledger balance -> no swap, no ledger change (needs an operator)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from dex_sniper.ingestion.models import WSOL_MINT, TokenCandidate
from dex_sniper.storage.models import Position

from .jupiter import JupiterClient
from .models import (
    SwapDirection,
    SwapOutcome,
    SwapResult,
    SwapState,
)
from .position_ledger import LedgerError, PositionLedger
from .submitter import TransactionSubmitter
from .swap_recorder import SwapRecorder

logger = logging.getLogger(__name__)


@dataclass
class SwapConfig:
    """Trade sizing and slippage."""

    buy_amount_lamports: int = 200_000_000  # 0.2 SOL
    buy_slippage_bps: int = 1000  # 10%
    sell_slippage_bps: int = 1000


class SwapExecutor:
    """
    Executes buys and sells through the aggregator and a TransactionSubmitter.

    Usage:
        executor = SwapExecutor(jupiter, submitter, ledger, recorder)
        result = await executor.buy(candidate, token_name="PEPE", decimals=6)
        if result.success:
            ...
    """

    def __init__(
        self,
        jupiter: JupiterClient,
        submitter: TransactionSubmitter,
        ledger: PositionLedger,
        recorder: Optional[SwapRecorder] = None,
        config: Optional[SwapConfig] = None,
    ):
        self._jupiter = jupiter
        self._submitter = submitter
        self._ledger = ledger
        self._recorder = recorder
        self._config = config or SwapConfig()
        self._buying: set[str] = set()

    async def buy(
        self,
        candidate: TokenCandidate,
        token_name: Optional[str] = None,
        decimals: Optional[int] = None,
    ) -> SwapResult:
        """
        Buy a candidate token with the configured SOL amount.

        A mint that is already in the ledger, or has a buy in flight, is not
        bought again.
        """
        mint = candidate.mint
        if mint in self._buying:
            return self._already_held(mint, "buy already in flight")

        self._buying.add(mint)
        try:
            try:
                held = await self._ledger.get(mint)
            except LedgerError as e:
                return self._rejected(SwapDirection.BUY, mint, str(e), None)
            if held is not None:
                return self._already_held(mint, "position already open")

            result = await self._execute(
                SwapDirection.BUY,
                input_mint=WSOL_MINT,
                output_mint=mint,
                amount=self._config.buy_amount_lamports,
                slippage_bps=self._config.buy_slippage_bps,
            )

            if result.success:
                logger.info(f"Bought {mint}: {result.signature}")
                if self._recorder is not None:
                    await self._recorder.record_buy(result, token_name, decimals)
            return result
        finally:
            self._buying.discard(mint)

    async def sell(self, position: Position) -> SwapResult:
        """Sell the full held balance of a position."""
        mint = position.token_mint

        try:
            row = await self._ledger.get(mint)
        except LedgerError as e:
            return self._rejected(SwapDirection.SELL, mint, str(e), None)
        if row is None:
            return self._rejected(SwapDirection.SELL, mint, "position not in ledger", None)

        try:
            on_chain = await self._submitter.get_token_balance(mint)
        except Exception as e:
            return self._rejected(
                SwapDirection.SELL, mint, f"wallet balance lookup failed: {e}", None
            )

        expected = row.raw_balance()

        if on_chain is not None and on_chain == 0:
            logger.warning(f"{mint} already sold elsewhere, removing from ledger")
            try:
                await self._ledger.remove(mint)
            except LedgerError as e:
                logger.error(f"{e}. Remove {mint} manually!")
            return SwapResult(
                direction=SwapDirection.SELL,
                outcome=SwapOutcome.ALREADY_DISPOSED,
                state=SwapState.REJECTED,
                mint=mint,
                error="wallet balance is zero",
            )

        if on_chain is not None and expected is not None and on_chain != expected:
            logger.error(
                f"Balance mismatch for {mint}: wallet={on_chain} ledger={expected}. "
                f"Sell manually!"
            )
            return SwapResult(
                direction=SwapDirection.SELL,
                outcome=SwapOutcome.BALANCE_MISMATCH,
                state=SwapState.REJECTED,
                mint=mint,
                error=f"wallet balance {on_chain} != ledger balance {expected}",
            )

        amount = on_chain if on_chain is not None else expected
        if not amount:
            return self._rejected(
                SwapDirection.SELL, mint, "unknown token balance", None
            )

        result = await self._execute(
            SwapDirection.SELL,
            input_mint=mint,
            output_mint=WSOL_MINT,
            amount=amount,
            slippage_bps=self._config.sell_slippage_bps,
        )

        if result.success:
            logger.info(f"Sold {mint} ({row.token_name}): {result.signature}")
            try:
                await self._ledger.remove(mint)
            except LedgerError as e:
                logger.error(f"{e}. Remove {mint} manually!")
        return result

    async def _execute(
        self,
        direction: SwapDirection,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> SwapResult:
        mint = output_mint if direction == SwapDirection.BUY else input_mint
        result = SwapResult(
            direction=direction,
            outcome=SwapOutcome.REJECTED,
            state=SwapState.QUOTE_REQUESTED,
            mint=mint,
            history=[SwapState.QUOTE_REQUESTED],
        )

        quote_result = await self._jupiter.get_quote(
            input_mint, output_mint, amount, slippage_bps
        )
        if not quote_result.ok:
            return self._fail(result, f"quote failed: {quote_result.error}")
        result.quote = quote_result.value
        self._advance(result, SwapState.QUOTE_RECEIVED)

        swap_transaction = await self._jupiter.build_swap(
            result.quote, self._submitter.public_key
        )
        if not swap_transaction:
            return self._fail(result, "swap transaction could not be built")
        self._advance(result, SwapState.TX_BUILT)

        try:
            signed = self._submitter.sign(swap_transaction)
        except Exception as e:
            return self._fail(result, f"signing failed: {e}")
        self._advance(result, SwapState.TX_SIGNED)

        trade = {
            "direction": direction.value,
            "tokenMint": mint,
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": amount,
            "expectedOut": result.quote.out_amount,
        }
        try:
            submitted = await self._submitter.send(signed, trade)
        except Exception as e:
            return self._fail(result, f"submission failed: {e}")
        result.submitted = submitted
        result.signature = submitted.signature
        self._advance(result, SwapState.TX_SUBMITTED)

        error = await self._submitter.confirm(submitted)
        if error:
            return self._fail(result, error)

        self._advance(result, SwapState.CONFIRMED)
        result.outcome = SwapOutcome.CONFIRMED
        return result

    def _advance(self, result: SwapResult, state: SwapState) -> None:
        logger.debug(f"{result.direction.value} {result.mint}: {result.state.value} -> {state.value}")
        result.state = state
        result.history.append(state)

    def _fail(self, result: SwapResult, error: str) -> SwapResult:
        logger.warning(
            f"{result.direction.value} {result.mint} rejected at "
            f"{result.state.value}: {error}"
        )
        result.failed_stage = result.state
        result.error = error
        result.state = SwapState.REJECTED
        result.history.append(SwapState.REJECTED)
        return result

    def _already_held(self, mint: str, reason: str) -> SwapResult:
        logger.info(f"Skipping buy of {mint}: {reason}")
        return SwapResult(
            direction=SwapDirection.BUY,
            outcome=SwapOutcome.ALREADY_HELD,
            state=SwapState.REJECTED,
            mint=mint,
            error=reason,
        )

    def _rejected(
        self,
        direction: SwapDirection,
        mint: str,
        error: str,
        stage: Optional[SwapState],
    ) -> SwapResult:
        logger.warning(f"{direction.value} {mint} rejected: {error}")
        return SwapResult(
            direction=direction,
            outcome=SwapOutcome.REJECTED,
            state=SwapState.REJECTED,
            mint=mint,
            error=error,
            failed_stage=stage,
        )
