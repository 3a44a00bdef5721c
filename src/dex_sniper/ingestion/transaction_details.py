"""
Enhanced-transaction client.

Resolves discovery signatures to token mints and reads confirmed swap
events. The enhanced-transaction API indexes transactions with some lag, so
every lookup waits an initial delay and retries malformed or empty payloads
under the general backoff budget.

Lookups:
    - fetch_pool_mint(): new liquidity pool -> the non-WSOL mint of the pair
    - fetch_migrated_mint(): bonding-curve migration withdraw -> migrated mint
    - fetch_swap_details(): confirmed swap -> token inputs/outputs, fee, slot
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import aiohttp

from dex_sniper.core.retry import (
    Ok,
    Outcome,
    RetryableRequest,
    RetryPolicy,
    Retryable,
    Terminal,
)

from .client import ApiError, BaseApiClient, classify_api_error
from .models import RAYDIUM_AMM_PROGRAM, WSOL_MINT, SwapEventDetails, TokenAmount

logger = logging.getLogger(__name__)

# Positions of the two pair mints in the pool-initialize instruction
POOL_MINT_ACCOUNT_INDEXES = (8, 9)


@dataclass
class TransactionDetailsConfig:
    """Configuration for enhanced-transaction lookups."""

    url: str = ""
    timeout: float = 10.0
    commitment: str = "finalized"
    policy: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=10, initial_delay=3.0)
    )


class TransactionDetailsClient(BaseApiClient):
    """Async client for the enhanced (parsed) transaction API."""

    def __init__(
        self,
        config: TransactionDetailsConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(
            session=session,
            timeout=config.timeout,
            default_headers={"Content-Type": "application/json"},
        )
        self._config = config

    async def _post_transaction(self, signature: str) -> Outcome:
        """Fetch the parsed transaction; an empty result is retryable."""
        body = {
            "transactions": [signature],
            "commitment": self._config.commitment,
            "encoding": "jsonParsed",
        }
        try:
            data = await self._request("POST", self._config.url, json=body)
        except (ApiError, asyncio.TimeoutError, aiohttp.ClientError) as e:
            return classify_api_error(e)

        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return Retryable("transaction not indexed yet")
        return Ok(data[0])

    async def _lookup(self, signature: str, name: str, extract) -> Any:
        async def operation() -> Outcome:
            outcome = await self._post_transaction(signature)
            if not isinstance(outcome, Ok):
                return outcome
            return extract(outcome.value)

        result = await RetryableRequest(
            self._config.policy, name=f"{name} {signature[:8]}"
        ).execute(operation)

        if not result.ok:
            logger.warning(f"{name} failed for {signature}: {result.error}")
            return None
        return result.value

    async def fetch_pool_mint(self, signature: str) -> Optional[str]:
        """Mint of the new token in a freshly initialized liquidity pool."""
        return await self._lookup(signature, "pool mint lookup", extract_pool_mint)

    async def fetch_migrated_mint(self, signature: str) -> Optional[str]:
        """Mint moved by a bonding-curve migration withdraw."""
        return await self._lookup(
            signature, "migration lookup", extract_migrated_mint
        )

    async def fetch_swap_details(self, signature: str) -> Optional[SwapEventDetails]:
        """Swap event of a confirmed buy or sell."""
        return await self._lookup(
            signature,
            "swap details lookup",
            lambda tx: extract_swap_details(signature, tx),
        )


def extract_pool_mint(tx: dict) -> Outcome:
    """
    Find the pool-initialize instruction and return the non-WSOL pair mint.

    Pool creations that pair two non-WSOL tokens are not candidates.
    """
    instructions = tx.get("instructions")
    if not isinstance(instructions, list) or not instructions:
        return Retryable("no instructions in transaction")

    instruction = next(
        (
            ix for ix in instructions
            if isinstance(ix, dict) and ix.get("programId") == RAYDIUM_AMM_PROGRAM
        ),
        None,
    )
    if instruction is None:
        return Terminal("no pool instruction in transaction")

    accounts = instruction.get("accounts")
    if not isinstance(accounts, list) or len(accounts) <= max(POOL_MINT_ACCOUNT_INDEXES):
        return Terminal("pool instruction has too few accounts")

    first, second = (accounts[i] for i in POOL_MINT_ACCOUNT_INDEXES)
    if first == WSOL_MINT and second != WSOL_MINT:
        return Ok(second)
    if second == WSOL_MINT and first != WSOL_MINT:
        return Ok(first)
    return Terminal("pool is not paired with WSOL")


def extract_migrated_mint(tx: dict) -> Outcome:
    if tx.get("type") != "WITHDRAW" or tx.get("source") != "PUMP_FUN":
        return Terminal(
            f"not a migration withdraw (type={tx.get('type')}, source={tx.get('source')})"
        )

    transfers = tx.get("tokenTransfers")
    if not isinstance(transfers, list) or not transfers:
        return Retryable("no token transfers in withdraw")

    mint = transfers[0].get("mint") if isinstance(transfers[0], dict) else None
    if not mint:
        return Retryable("withdraw transfer has no mint")
    return Ok(mint)


def extract_swap_details(signature: str, tx: dict) -> Outcome:
    events = tx.get("events") if isinstance(tx.get("events"), dict) else {}
    swap = events.get("swap") if isinstance(events.get("swap"), dict) else {}
    inner = swap.get("innerSwaps")
    if not isinstance(inner, list) or not inner or not isinstance(inner[0], dict):
        return Retryable("no swap event in transaction")

    first = inner[0]
    inputs = _token_amounts(first.get("tokenInputs"))
    outputs = _token_amounts(first.get("tokenOutputs"))
    if not inputs or not outputs:
        return Retryable("swap event has no token movements")

    program = first.get("programInfo") or {}
    return Ok(
        SwapEventDetails(
            signature=signature,
            token_inputs=inputs,
            token_outputs=outputs,
            fee_lamports=int(tx.get("fee") or 0),
            slot=int(tx.get("slot") or 0),
            timestamp=int(tx.get("timestamp") or 0),
            program_source=program.get("source") or "N/A",
        )
    )


def _token_amounts(items) -> tuple[TokenAmount, ...]:
    if not isinstance(items, list):
        return ()
    amounts = []
    for item in items:
        if not isinstance(item, dict) or not item.get("mint"):
            continue
        try:
            amount = Decimal(str(item.get("tokenAmount")))
        except InvalidOperation:
            continue
        raw = item.get("rawTokenAmount") or {}
        amounts.append(
            TokenAmount(
                mint=item["mint"],
                amount=amount,
                raw_amount=int(raw["tokenAmount"]) if raw.get("tokenAmount") else None,
                decimals=raw.get("decimals"),
            )
        )
    return tuple(amounts)
