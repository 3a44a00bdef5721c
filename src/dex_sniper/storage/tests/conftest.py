"""
Test fixtures for storage tests.

Repositories are exercised against a mocked Database; asyncpg records are
stood in for by plain dicts.
"""
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from dex_sniper.storage.models import Position, SeenToken
from dex_sniper.storage.repositories import PositionRepository, TokenRepository


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def mock_db():
    """Mock database for unit tests."""
    db = AsyncMock()
    db.execute = AsyncMock(return_value="DELETE 1")
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def position_repo(mock_db) -> PositionRepository:
    return PositionRepository(mock_db)


@pytest.fixture
def token_repo(mock_db) -> TokenRepository:
    return TokenRepository(mock_db)


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================


@pytest.fixture
def position_row() -> dict:
    """A holdings row as returned by asyncpg."""
    return {
        "token_mint": "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr",
        "opened_at": 1718000000000,
        "token_name": "Pepe Sol",
        "balance": Decimal("153827.123456"),
        "decimals": 6,
        "raw_amount": Decimal("153827123456"),
        "sol_paid": Decimal("0.2"),
        "sol_fee_paid": Decimal("105000"),
        "paid_usd": Decimal("30"),
        "fee_usd": Decimal("0.01575"),
        "per_token_paid_usd": Decimal("0.000195024"),
        "slot": 301234567,
        "program": "RAYDIUM",
    }


@pytest.fixture
def sample_position(position_row) -> Position:
    return Position(**position_row)


@pytest.fixture
def sample_token() -> SeenToken:
    return SeenToken(
        seen_at=1718000000000,
        mint="7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr",
        name="Pepe Sol",
        creator="CreatorWa11et1111111111111111111111111111111",
    )
