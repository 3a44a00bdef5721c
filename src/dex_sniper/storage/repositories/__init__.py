"""Repositories for the holdings ledger and the seen-token table."""
from dex_sniper.storage.repositories.base import BaseRepository
from dex_sniper.storage.repositories.position_repo import PositionRepository
from dex_sniper.storage.repositories.token_repo import TokenRepository

__all__ = [
    "BaseRepository",
    "PositionRepository",
    "TokenRepository",
]
