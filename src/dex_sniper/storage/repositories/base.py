"""
Base repository class for async PostgreSQL access.
"""
from __future__ import annotations

from typing import Generic, Optional, Type, TypeVar

from pydantic import BaseModel

from dex_sniper.storage.database import Database

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """
    Base class for async repositories.

    Subclasses define table_name, model_class and key_column.
    """

    table_name: str
    model_class: Type[T]
    key_column: str = "id"

    def __init__(self, db: Database) -> None:
        self.db = db

    def _record_to_model(self, record) -> Optional[T]:
        """Convert asyncpg Record to Pydantic model."""
        if record is None:
            return None
        return self.model_class(**dict(record))

    def _records_to_models(self, records) -> list[T]:
        return [self._record_to_model(r) for r in records]

    async def get(self, key) -> Optional[T]:
        """Get a single record by key."""
        query = f"SELECT * FROM {self.table_name} WHERE {self.key_column} = $1"
        record = await self.db.fetchrow(query, key)
        return self._record_to_model(record)

    async def delete(self, key) -> bool:
        """Delete a record by key. Returns True if a row was deleted."""
        query = f"DELETE FROM {self.table_name} WHERE {self.key_column} = $1"
        result = await self.db.execute(query, key)
        return result != "DELETE 0"

    async def count(self) -> int:
        """Count all records in table."""
        query = f"SELECT COUNT(*) FROM {self.table_name}"
        return await self.db.fetchval(query) or 0
