"""
Data models for the execution layer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SwapDirection(str, Enum):
    BUY = "buy"  # SOL -> token
    SELL = "sell"  # token -> SOL


class SwapState(str, Enum):
    """Per-swap progression. Every failure lands in REJECTED."""
    QUOTE_REQUESTED = "quote_requested"
    QUOTE_RECEIVED = "quote_received"
    TX_BUILT = "tx_built"
    TX_SIGNED = "tx_signed"
    TX_SUBMITTED = "tx_submitted"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class SwapOutcome(str, Enum):
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    ALREADY_DISPOSED = "already_disposed"  # wallet balance already zero
    BALANCE_MISMATCH = "balance_mismatch"  # wallet and ledger disagree
    ALREADY_HELD = "already_held"  # buy skipped, mint held or being bought


@dataclass(frozen=True)
class SwapQuote:
    """
    Executable price for one swap. Valid for one execution attempt only.

    Amounts are in the smallest unit of each token (lamports for SOL).
    """
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    slippage_bps: int
    route: dict[str, Any] = field(repr=False)

    @classmethod
    def from_api(cls, data: dict) -> "SwapQuote":
        return cls(
            input_mint=data["inputMint"],
            output_mint=data["outputMint"],
            in_amount=int(data["inAmount"]),
            out_amount=int(data["outAmount"]),
            slippage_bps=int(data.get("slippageBps") or 0),
            route=data,
        )


@dataclass(frozen=True)
class SubmittedTransaction:
    """A transaction handed to the network, or its simulated stand-in."""
    signature: str
    blockhash: Optional[str] = None
    last_valid_block_height: Optional[int] = None
    simulated: bool = False
    trade: dict[str, Any] = field(default_factory=dict)


@dataclass
class SwapResult:
    """Final outcome of a buy or sell."""
    direction: SwapDirection
    outcome: SwapOutcome
    state: SwapState
    mint: str
    signature: Optional[str] = None
    quote: Optional[SwapQuote] = None
    error: Optional[str] = None
    failed_stage: Optional[SwapState] = None
    submitted: Optional[SubmittedTransaction] = None
    history: list[SwapState] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome == SwapOutcome.CONFIRMED
