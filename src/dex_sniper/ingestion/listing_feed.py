"""
Listing-feed discovery source.

Polls the price oracle's new-listing endpoint and feeds the same candidate
queue the log listener uses. Polling pauses while the number of open
positions is at the configured ceiling.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .models import CandidateSignal, DiscoverySource
from .price_oracle import PriceOracleClient

if TYPE_CHECKING:
    from dex_sniper.execution.position_ledger import PositionLedger
    from dex_sniper.storage.repositories import TokenRepository

logger = logging.getLogger(__name__)


@dataclass
class ListingFeedConfig:
    """Configuration for the listing-feed poller."""

    max_token_fetch: int = 3
    max_token_holdings: int = 5
    meme_platform_enabled: bool = False
    min_age_seconds: int = 0  # only listings at least this old
    block_returning_token_names: bool = True
    item_delay_ms: int = 1000  # between queued candidates
    poll_interval: float = 5.0
    holdings_full_wait: float = 5.0
    max_remembered_mints: int = 1000


class ListingFeedPoller:
    """
    Periodically turns new listings into CandidateSignals.

    Usage:
        poller = ListingFeedPoller(oracle, ledger, token_repo, queue)
        task = asyncio.create_task(poller.run())
        ...
        await poller.stop()
    """

    def __init__(
        self,
        oracle: PriceOracleClient,
        ledger: "PositionLedger",
        token_repo: Optional["TokenRepository"],
        queue: "asyncio.Queue[CandidateSignal]",
        config: Optional[ListingFeedConfig] = None,
    ):
        self._oracle = oracle
        self._ledger = ledger
        self._token_repo = token_repo
        self._queue = queue
        self._config = config or ListingFeedConfig()
        self._stop_event = asyncio.Event()
        self._queued_mints: set[str] = set()
        self._queued_order: deque[str] = deque()

    async def run(self) -> None:
        """Poll until stop() is called."""
        self._stop_event.clear()
        logger.info("Listing feed poller started")

        while not self._stop_event.is_set():
            try:
                wait = await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error polling listing feed: {e}")
                wait = 5.0

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=wait)
            except asyncio.TimeoutError:
                continue

        logger.info("Listing feed poller stopped")

    async def stop(self) -> None:
        self._stop_event.set()

    async def poll_once(self) -> float:
        """
        Run one polling pass.

        Returns:
            Seconds to wait before the next pass
        """
        config = self._config

        held = await self._ledger.count()
        if held >= config.max_token_holdings:
            logger.info(
                f"Holding {held}/{config.max_token_holdings} tokens, "
                f"waiting for a position to close"
            )
            return config.holdings_full_wait

        listings = await self._oracle.get_new_listings(
            limit=config.max_token_fetch,
            meme_platform_enabled=config.meme_platform_enabled,
            min_age_seconds=config.min_age_seconds,
        )

        for listing in listings:
            if self._stop_event.is_set():
                break

            if listing.address in self._queued_mints:
                continue

            if await self._name_already_seen(listing.name):
                logger.debug(f"Skipping returning token name: {listing.name}")
                continue

            self._remember(listing.address)
            await self._queue.put(
                CandidateSignal(
                    source=DiscoverySource.LISTING,
                    mint=listing.address,
                    symbol=listing.symbol,
                )
            )
            logger.info(f"New listing queued: {listing.symbol} ({listing.address})")

            if config.item_delay_ms > 0:
                await asyncio.sleep(config.item_delay_ms / 1000)

        return config.poll_interval

    def _remember(self, mint: str) -> None:
        self._queued_mints.add(mint)
        self._queued_order.append(mint)
        while len(self._queued_order) > self._config.max_remembered_mints:
            self._queued_mints.discard(self._queued_order.popleft())

    async def _name_already_seen(self, name: Optional[str]) -> bool:
        if not name or not self._config.block_returning_token_names:
            return False
        if self._token_repo is None:
            return False
        try:
            return bool(await self._token_repo.get_by_name(name))
        except Exception as e:
            logger.warning(f"Seen-token lookup failed for {name}: {e}")
            return False
