"""
Storage Layer - Async PostgreSQL database and repositories.

Public API:
    Database, DatabaseConfig - Connection pool management and schema bootstrap

    Models:
        Position   - An open holding, keyed by token mint
        SeenToken  - A token that passed the risk gate

    Repositories:
        PositionRepository, TokenRepository
"""
from dex_sniper.storage.database import Database, DatabaseConfig
from dex_sniper.storage.models import Position, SeenToken
from dex_sniper.storage.repositories import (
    BaseRepository,
    PositionRepository,
    TokenRepository,
)

__all__ = [
    "Database",
    "DatabaseConfig",
    "Position",
    "SeenToken",
    "BaseRepository",
    "PositionRepository",
    "TokenRepository",
]
