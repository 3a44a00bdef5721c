"""
Position ledger.

Single source of truth for open holdings. All reads and writes go through
one asyncio.Lock so that an insert or removal never interleaves with a
valuation pass reading the ledger.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from dex_sniper.storage.models import Position
from dex_sniper.storage.repositories import PositionRepository

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """A ledger read or write failed."""

    def __init__(self, operation: str, mint: Optional[str], cause: Exception):
        target = f" for {mint}" if mint else ""
        super().__init__(f"Ledger {operation}{target} failed: {cause}")
        self.operation = operation
        self.mint = mint
        self.cause = cause


class PositionLedger:
    """Serialized access to the holdings table."""

    def __init__(self, repo: PositionRepository):
        self._repo = repo
        self._lock = asyncio.Lock()

    async def insert(self, position: Position) -> Position:
        async with self._lock:
            try:
                stored = await self._repo.create(position)
            except Exception as e:
                raise LedgerError("insert", position.token_mint, e) from e
        logger.info(f"Ledger: opened {position.token_mint} ({position.token_name})")
        return stored

    async def get(self, mint: str) -> Optional[Position]:
        async with self._lock:
            try:
                return await self._repo.get(mint)
            except Exception as e:
                raise LedgerError("read", mint, e) from e

    async def list_open(self) -> list[Position]:
        async with self._lock:
            try:
                return await self._repo.get_all()
            except Exception as e:
                raise LedgerError("list", None, e) from e

    async def remove(self, mint: str) -> bool:
        async with self._lock:
            try:
                removed = await self._repo.delete(mint)
            except Exception as e:
                raise LedgerError("remove", mint, e) from e
        if removed:
            logger.info(f"Ledger: closed {mint}")
        return removed

    async def count(self) -> int:
        async with self._lock:
            try:
                return await self._repo.count()
            except Exception as e:
                raise LedgerError("count", None, e) from e
