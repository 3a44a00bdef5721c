"""
Pydantic models matching the ledger schema (see schema.py).

IMPORTANT: All monetary and balance fields use Decimal for precision.
Timestamps are Unix milliseconds.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Position(BaseModel):
    """An open token holding. Exists iff the buy was confirmed."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    token_mint: str
    opened_at: int
    token_name: str = "N/A"
    balance: Decimal  # UI units
    decimals: Optional[int] = None
    raw_amount: Optional[int] = None  # smallest unit, exact
    sol_paid: Decimal
    sol_fee_paid: Decimal = Decimal("0")  # lamports
    paid_usd: Decimal
    fee_usd: Decimal = Decimal("0")
    per_token_paid_usd: Decimal
    slot: int = 0
    program: str = "N/A"

    def raw_balance(self) -> Optional[int]:
        """Balance in the token's smallest unit, if known."""
        if self.raw_amount is not None:
            return self.raw_amount
        if self.decimals is None:
            return None
        return int(self.balance.scaleb(self.decimals).to_integral_value())


class SeenToken(BaseModel):
    """A token that passed the risk gate."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[int] = None
    seen_at: int
    mint: str
    name: str
    creator: str
