"""
Execution layer test fixtures.

The execution layer talks to the swap aggregator, the chain and the ledger.
All of them MUST be mocked in tests - never hit real APIs.
"""
import base64
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from dex_sniper.core.retry import RetryResult
from dex_sniper.execution.models import SwapQuote
from dex_sniper.execution.position_ledger import PositionLedger
from dex_sniper.execution.submitter import SimulatedTransactionSubmitter
from dex_sniper.ingestion.models import (
    WSOL_MINT,
    DiscoverySource,
    PriceSample,
    TokenCandidate,
)
from dex_sniper.storage.models import Position


MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
WALLET = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


# =============================================================================
# Database Fixtures
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


class InMemoryPositionRepo:
    """Dict-backed stand-in for PositionRepository. Mints are unique, like the table."""

    def __init__(self):
        self.rows: dict[str, Position] = {}

    async def create(self, position):
        if position.token_mint in self.rows:
            raise ValueError(
                f"duplicate key value violates unique constraint \"holdings_pkey\" "
                f"({position.token_mint})"
            )
        self.rows[position.token_mint] = position
        return position

    async def get(self, mint):
        return self.rows.get(mint)

    async def get_all(self):
        return sorted(self.rows.values(), key=lambda p: p.opened_at)

    async def delete(self, mint):
        return self.rows.pop(mint, None) is not None

    async def count(self):
        return len(self.rows)


@pytest.fixture
def position_repo():
    return InMemoryPositionRepo()


@pytest.fixture
def ledger(position_repo):
    return PositionLedger(position_repo)


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def mint():
    return MINT


@pytest.fixture
def candidate():
    return TokenCandidate(mint=MINT, source=DiscoverySource.RPC, signature="sig_pool")


@pytest.fixture
def buy_quote():
    route = {
        "inputMint": WSOL_MINT,
        "outputMint": MINT,
        "inAmount": "200000000",
        "outAmount": "153827123456",
        "slippageBps": 1000,
        "routePlan": [{"swapInfo": {"label": "Raydium"}}],
    }
    return SwapQuote.from_api(route)


@pytest.fixture
def make_position():
    """Factory for held positions; defaults describe 1000 tokens bought at $0.01."""
    def factory(**overrides):
        fields = {
            "token_mint": MINT,
            "opened_at": 1718000000000,
            "token_name": "Pepe Sol",
            "balance": Decimal("1000"),
            "decimals": 6,
            "sol_paid": Decimal("0.2"),
            "sol_fee_paid": Decimal("5000"),
            "paid_usd": Decimal("10"),
            "fee_usd": Decimal("0.5"),
            "per_token_paid_usd": Decimal("0.01"),
            "slot": 301234567,
            "program": "RAYDIUM",
        }
        fields.update(overrides)
        return Position(**fields)
    return factory


# =============================================================================
# Client Fixtures
# =============================================================================


@pytest.fixture
def mock_jupiter(buy_quote):
    jupiter = MagicMock()
    jupiter.get_quote = AsyncMock(
        return_value=RetryResult(ok=True, value=buy_quote, attempts=1)
    )
    jupiter.build_swap = AsyncMock(
        return_value=base64.b64encode(b"unsigned-swap-transaction").decode()
    )
    return jupiter


@pytest.fixture
def simulated_submitter():
    return SimulatedTransactionSubmitter(WALLET)


@pytest.fixture
def chain_submitter():
    """Mocked live submitter."""
    submitter = MagicMock()
    submitter.public_key = WALLET
    submitter.sign = MagicMock(return_value=b"signed")
    submitter.send = AsyncMock()
    submitter.confirm = AsyncMock(return_value=None)
    submitter.get_token_balance = AsyncMock(return_value=1_000_000_000)
    return submitter


@pytest.fixture
def mock_oracle():
    oracle = MagicMock()
    oracle.get_sol_price = AsyncMock(
        return_value=PriceSample(mint=WSOL_MINT, price_usd=Decimal("150"))
    )
    oracle.get_price = AsyncMock(
        return_value=PriceSample(mint=MINT, price_usd=Decimal("0.0002"))
    )
    return oracle
