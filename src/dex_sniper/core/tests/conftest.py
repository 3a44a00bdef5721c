"""
Core layer test fixtures.

Network, risk and execution collaborators are mocked; nothing here talks
to a real endpoint.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from dex_sniper.execution.models import SwapDirection, SwapOutcome, SwapResult, SwapState
from dex_sniper.ingestion.models import CandidateSignal, DiscoverySource
from dex_sniper.risk.models import RiskDecision, RiskReport


MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


@pytest.fixture
def recorded_sleeps():
    """Delays requested through an injected sleep function."""
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps):
    """Sleep replacement that records the delay and returns immediately."""
    async def sleep(delay):
        recorded_sleeps.append(delay)
        await asyncio.sleep(0)
    return sleep


@pytest.fixture
def rpc_signal():
    return CandidateSignal(source=DiscoverySource.RPC, signature="sig_pool_1")


@pytest.fixture
def pumpfun_signal():
    return CandidateSignal(source=DiscoverySource.PUMPFUN, signature="sig_migration_1")


@pytest.fixture
def listing_signal():
    return CandidateSignal(source=DiscoverySource.LISTING, mint=MINT, symbol="PEPE")


@pytest.fixture
def risk_report():
    return RiskReport.from_api(
        MINT,
        {
            "token": {"decimals": 6, "isInitialized": True},
            "tokenMeta": {"name": "Pepe Sol", "symbol": "PEPE"},
        },
    )


@pytest.fixture
def mock_tx_details():
    client = MagicMock()
    client.fetch_pool_mint = AsyncMock(return_value=MINT)
    client.fetch_migrated_mint = AsyncMock(return_value=MINT)
    return client


@pytest.fixture
def mock_risk_engine(risk_report):
    engine = MagicMock()
    engine.evaluate = AsyncMock(return_value=RiskDecision(accept=True, report=risk_report))
    return engine


@pytest.fixture
def confirmed_buy():
    return SwapResult(
        direction=SwapDirection.BUY,
        outcome=SwapOutcome.CONFIRMED,
        state=SwapState.CONFIRMED,
        mint=MINT,
        signature="buy_sig",
    )


@pytest.fixture
def mock_executor(confirmed_buy):
    executor = MagicMock()
    executor.buy = AsyncMock(return_value=confirmed_buy)
    return executor
