"""
Seen-token repository backing the duplicate-name check.
"""
from __future__ import annotations

from typing import Optional

from dex_sniper.storage.models import SeenToken
from dex_sniper.storage.repositories.base import BaseRepository


class TokenRepository(BaseRepository[SeenToken]):
    """Tokens that passed the risk gate."""

    table_name = "tokens"
    model_class = SeenToken

    async def create(self, token: SeenToken) -> SeenToken:
        query = """
            INSERT INTO tokens (seen_at, mint, name, creator)
            VALUES ($1, $2, $3, $4)
            RETURNING *
        """
        record = await self.db.fetchrow(
            query, token.seen_at, token.mint, token.name, token.creator
        )
        return self._record_to_model(record) or token

    async def get_by_name_and_creator(self, name: str, creator: str) -> list[SeenToken]:
        """Prior tokens launched under the same name by the same creator."""
        records = await self.db.fetch(
            "SELECT * FROM tokens WHERE name = $1 AND creator = $2",
            name,
            creator,
        )
        return self._records_to_models(records)

    async def get_by_name(self, name: str) -> list[SeenToken]:
        records = await self.db.fetch("SELECT * FROM tokens WHERE name = $1", name)
        return self._records_to_models(records)

    async def get_by_mint(self, mint: str) -> Optional[SeenToken]:
        record = await self.db.fetchrow(
            "SELECT * FROM tokens WHERE mint = $1 ORDER BY seen_at DESC LIMIT 1",
            mint,
        )
        return self._record_to_model(record)
