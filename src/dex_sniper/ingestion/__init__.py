"""
Ingestion Layer - Discovery sources and external data clients.

This module provides:
    - EventListener: Log-subscription websocket emitting CandidateSignals
    - ListingFeedPoller: Polls the price oracle's new-listing feed
    - PriceOracleClient: USD prices and new listings
    - TransactionDetailsClient: Resolves signatures to mints and swap events
    - BaseApiClient, ApiError, RateLimitError: Shared REST plumbing

Usage:
    from dex_sniper.ingestion import EventListener, ListenerConfig

    queue = asyncio.Queue()
    listener = EventListener(ListenerConfig(url=wss_url), queue)
    asyncio.create_task(listener.run())
"""

from .client import ApiError, BaseApiClient, RateLimitError, classify_api_error
from .listing_feed import ListingFeedConfig, ListingFeedPoller
from .models import (
    PUMPFUN_MIGRATION_ACCOUNT,
    RAYDIUM_AMM_PROGRAM,
    WSOL_MINT,
    CandidateSignal,
    DiscoverySource,
    PriceSample,
    SwapEventDetails,
    TokenAmount,
    TokenCandidate,
    TokenListing,
)
from .price_oracle import PriceOracleClient, PriceOracleConfig
from .transaction_details import TransactionDetailsClient, TransactionDetailsConfig
from .websocket import EventListener, ListenerConfig, ListenerState

__all__ = [
    # Client
    "ApiError",
    "BaseApiClient",
    "RateLimitError",
    "classify_api_error",
    # Models
    "CandidateSignal",
    "DiscoverySource",
    "PriceSample",
    "SwapEventDetails",
    "TokenAmount",
    "TokenCandidate",
    "TokenListing",
    "PUMPFUN_MIGRATION_ACCOUNT",
    "RAYDIUM_AMM_PROGRAM",
    "WSOL_MINT",
    # Sources
    "EventListener",
    "ListenerConfig",
    "ListenerState",
    "ListingFeedConfig",
    "ListingFeedPoller",
    # Clients
    "PriceOracleClient",
    "PriceOracleConfig",
    "TransactionDetailsClient",
    "TransactionDetailsConfig",
]
