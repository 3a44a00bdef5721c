"""
Data models for the ingestion layer.

These models represent:
- Raw candidate signals from the log stream or the listing feed
- Resolved token candidates handed to the risk gate
- Price samples from the oracle
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional


# Well-known Solana addresses
WSOL_MINT = "So11111111111111111111111111111111111111112"
RAYDIUM_AMM_PROGRAM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
PUMPFUN_MIGRATION_ACCOUNT = "39azUYFWPz3VHgKCf3VChUwbpURdCHRxjWVowf5jUJjg"

POOL_INIT_MARKER = "Program log: initialize2: InitializeInstruction2"
MIGRATION_WITHDRAW_MARKER = "Program log: Instruction: Withdraw"


class DiscoverySource(str, Enum):
    """Where a candidate token was discovered."""
    RPC = "rpc"  # new liquidity-pool initialization logs
    PUMPFUN = "pumpfun"  # bonding-curve migration withdraw logs
    LISTING = "listing"  # price oracle new-listing feed


@dataclass(frozen=True)
class CandidateSignal:
    """
    A raw discovery event.

    Log-stream signals carry only the transaction signature; the mint is
    resolved later. Listing-feed signals already carry mint and symbol.
    """
    source: DiscoverySource
    signature: Optional[str] = None
    mint: Optional[str] = None
    symbol: Optional[str] = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not self.signature and not self.mint:
            raise ValueError("CandidateSignal needs a signature or a mint")


@dataclass(frozen=True)
class TokenCandidate:
    """A token proposed for evaluation. Consumed by exactly one pipeline run."""
    mint: str
    source: DiscoverySource
    symbol: Optional[str] = None
    signature: Optional[str] = None


@dataclass(frozen=True)
class PriceSample:
    """Unit price in USD for a token at a point in time."""
    mint: str
    price_usd: Decimal
    sampled_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class TokenListing:
    """One item of the price oracle's new-listing feed."""
    address: str
    symbol: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class TokenAmount:
    """Token movement inside a parsed swap event."""
    mint: str
    amount: Decimal  # UI units
    raw_amount: Optional[int] = None
    decimals: Optional[int] = None


@dataclass(frozen=True)
class SwapEventDetails:
    """Swap event extracted from an enhanced (parsed) transaction."""
    signature: str
    token_inputs: tuple[TokenAmount, ...]
    token_outputs: tuple[TokenAmount, ...]
    fee_lamports: int
    slot: int
    timestamp: int
    program_source: str
