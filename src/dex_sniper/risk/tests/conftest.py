"""
Risk layer test fixtures.

The risk report service, token repository and price oracle are mocked.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from dex_sniper.ingestion.models import PriceSample
from dex_sniper.risk.engine import RiskScoringEngine
from dex_sniper.risk.models import RiskConfig, RiskReport


MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
CREATOR = "CreAtor11111111111111111111111111111111111"


def _clean_payload(**overrides):
    """Risk report payload that passes every default condition."""
    payload = {
        "mint": MINT,
        "creator": CREATOR,
        "token": {
            "mintAuthority": None,
            "freezeAuthority": None,
            "isInitialized": True,
            "supply": 1_000_000_000_000_000,
            "decimals": 6,
        },
        "tokenMeta": {"name": "Pepe Sol", "symbol": "PEPE", "mutable": False},
        "topHolders": [
            {"address": "PoolVaultA", "pct": 60.0, "insider": False},
            {"address": "Holder1", "pct": 4.2, "insider": False},
        ],
        "markets": [
            {
                "pubkey": "Market1",
                "marketType": "raydium",
                "liquidityA": "PoolVaultA",
                "liquidityB": "PoolVaultB",
            }
        ],
        "totalLPProviders": 3,
        "totalMarketLiquidity": 45000.5,
        "rugged": False,
        "score": 501,
        "risks": [{"name": "Low amount of LP Providers", "score": 500, "level": "warn"}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def report_payload():
    """Factory for risk report payloads; keyword overrides replace top-level keys."""
    return _clean_payload


@pytest.fixture
def clean_report():
    return RiskReport.from_api(MINT, _clean_payload())


@pytest.fixture
def mint():
    return MINT


@pytest.fixture
def creator():
    return CREATOR


@pytest.fixture
def mock_report_client(clean_report):
    client = MagicMock()
    client.get_report = AsyncMock(return_value=clean_report)
    return client


@pytest.fixture
def mock_token_repo():
    repo = MagicMock()
    repo.get_by_name_and_creator = AsyncMock(return_value=[])
    repo.create = AsyncMock(side_effect=lambda token: token)
    return repo


@pytest.fixture
def mock_oracle():
    oracle = MagicMock()
    oracle.get_price = AsyncMock(
        return_value=PriceSample(mint=MINT, price_usd=Decimal("0.0005"))
    )
    return oracle


@pytest.fixture
def risk_config():
    return RiskConfig()


@pytest.fixture
def engine(mock_report_client, mock_token_repo, mock_oracle, risk_config):
    return RiskScoringEngine(
        mock_report_client,
        token_repo=mock_token_repo,
        oracle=mock_oracle,
        config=risk_config,
    )
