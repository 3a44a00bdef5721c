"""
Ingestion layer test fixtures.

All HTTP calls are mocked by patching BaseApiClient._request; no test
touches a real RPC node, oracle or websocket.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from dex_sniper.core.retry import RetryPolicy
from dex_sniper.ingestion.models import RAYDIUM_AMM_PROGRAM, WSOL_MINT
from dex_sniper.ingestion.price_oracle import PriceOracleClient, PriceOracleConfig
from dex_sniper.ingestion.transaction_details import (
    TransactionDetailsClient,
    TransactionDetailsConfig,
)


TOKEN_MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


@pytest.fixture
def no_wait_policy():
    """Retry policy with real attempts but no waiting."""
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0)


@pytest.fixture
def oracle(no_wait_policy):
    return PriceOracleClient(
        PriceOracleConfig(
            base_url="https://oracle.test",
            api_key="test-key",
            rate_limit_ms=0,
            persistent_policy=no_wait_policy,
        ),
        session=MagicMock(),
    )


@pytest.fixture
def tx_details(no_wait_policy):
    return TransactionDetailsClient(
        TransactionDetailsConfig(url="https://tx.test/v0/transactions", policy=no_wait_policy),
        session=MagicMock(),
    )


def _pool_transaction(first=WSOL_MINT, second=TOKEN_MINT):
    accounts = [f"account_{i}" for i in range(21)]
    accounts[8] = first
    accounts[9] = second
    return {
        "signature": "sig_pool",
        "instructions": [
            {"programId": "ComputeBudget111111111111111111111111111111", "accounts": []},
            {"programId": RAYDIUM_AMM_PROGRAM, "accounts": accounts},
        ],
    }


@pytest.fixture
def token_mint():
    return TOKEN_MINT


@pytest.fixture
def pool_transaction():
    """Factory for parsed pool-initialize transactions (pair at accounts 8 and 9)."""
    return _pool_transaction


@pytest.fixture
def swap_transaction():
    return {
        "signature": "sig_buy",
        "fee": 5000,
        "slot": 301234567,
        "timestamp": 1718000000,
        "events": {
            "swap": {
                "innerSwaps": [
                    {
                        "tokenInputs": [
                            {
                                "mint": WSOL_MINT,
                                "tokenAmount": 0.2,
                                "rawTokenAmount": {"tokenAmount": "200000000", "decimals": 9},
                            }
                        ],
                        "tokenOutputs": [
                            {
                                "mint": TOKEN_MINT,
                                "tokenAmount": 153827.123456,
                                "rawTokenAmount": {"tokenAmount": "153827123456", "decimals": 6},
                            }
                        ],
                        "programInfo": {"source": "RAYDIUM", "account": "x"},
                    }
                ]
            }
        },
    }


@pytest.fixture
def signal_queue():
    return asyncio.Queue()


@pytest.fixture
def mock_ledger():
    ledger = MagicMock()
    ledger.count = AsyncMock(return_value=0)
    return ledger


@pytest.fixture
def mock_token_repo():
    repo = MagicMock()
    repo.get_by_name = AsyncMock(return_value=None)
    return repo
