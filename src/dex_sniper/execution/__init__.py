"""
Execution Layer - Swaps, positions and exits.

This module provides:
    - SwapExecutor: Quote -> build -> sign -> submit -> confirm state machine
    - SwapConfig: Trade size and slippage
    - JupiterClient, JupiterConfig: Aggregator quote and swap construction
    - TransactionSubmitter: Chain or simulated submission capability
    - SwapRecorder: Builds the ledger Position for a confirmed buy
    - PositionLedger, LedgerError: Serialized access to open holdings
    - ExitManager, ExitConfig: Stop-loss / take-profit loop

Usage:
    submitter = SimulatedTransactionSubmitter(public_key)
    executor = SwapExecutor(jupiter, submitter, ledger, recorder, SwapConfig())

    result = await executor.buy(candidate, token_name="PEPE", decimals=6)
"""

from .exit_manager import CycleReport, ExitConfig, ExitManager, PositionValuation
from .jupiter import JupiterClient, JupiterConfig
from .models import (
    SubmittedTransaction,
    SwapDirection,
    SwapOutcome,
    SwapQuote,
    SwapResult,
    SwapState,
)
from .position_ledger import LedgerError, PositionLedger
from .submitter import (
    ChainTransactionSubmitter,
    SimulatedTransactionSubmitter,
    TransactionSubmitter,
)
from .swap_executor import SwapConfig, SwapExecutor
from .swap_recorder import RecorderConfig, SwapRecorder

__all__ = [
    "ChainTransactionSubmitter",
    "CycleReport",
    "ExitConfig",
    "ExitManager",
    "JupiterClient",
    "JupiterConfig",
    "LedgerError",
    "PositionLedger",
    "PositionValuation",
    "RecorderConfig",
    "SimulatedTransactionSubmitter",
    "SubmittedTransaction",
    "SwapConfig",
    "SwapDirection",
    "SwapExecutor",
    "SwapOutcome",
    "SwapQuote",
    "SwapRecorder",
    "SwapResult",
    "SwapState",
    "TransactionSubmitter",
]
