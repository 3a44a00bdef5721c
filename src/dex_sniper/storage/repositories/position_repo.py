"""
Position repository for the holdings ledger.
"""
from __future__ import annotations

from decimal import Decimal

from dex_sniper.storage.models import Position
from dex_sniper.storage.repositories.base import BaseRepository


class PositionRepository(BaseRepository[Position]):
    """Repository for open holdings, keyed by token mint."""

    table_name = "holdings"
    model_class = Position
    key_column = "token_mint"

    async def create(self, position: Position) -> Position:
        """Insert a new holding."""
        query = """
            INSERT INTO holdings
            (token_mint, opened_at, token_name, balance, decimals, raw_amount,
             sol_paid, sol_fee_paid, paid_usd, fee_usd, per_token_paid_usd, slot, program)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
            RETURNING *
        """
        record = await self.db.fetchrow(
            query,
            position.token_mint,
            position.opened_at,
            position.token_name,
            position.balance,
            position.decimals,
            Decimal(position.raw_amount) if position.raw_amount is not None else None,
            position.sol_paid,
            position.sol_fee_paid,
            position.paid_usd,
            position.fee_usd,
            position.per_token_paid_usd,
            position.slot,
            position.program,
        )
        return self._record_to_model(record) or position

    async def get_all(self) -> list[Position]:
        """All open holdings, oldest first."""
        records = await self.db.fetch(
            "SELECT * FROM holdings ORDER BY opened_at ASC"
        )
        return self._records_to_models(records)
