"""
Transaction submission.

The swap executor talks to a TransactionSubmitter chosen once at startup:

    ChainTransactionSubmitter      - signs with the wallet keypair, sends and
                                     confirms over Solana RPC
    SimulatedTransactionSubmitter  - never touches the network; returns a
                                     synthetic, immediately confirmed
                                     transaction carrying the trade parameters

Everything else in the pipeline behaves identically in both modes.
"""
from __future__ import annotations

import base64
import json
import logging
import uuid
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .models import SubmittedTransaction

logger = logging.getLogger(__name__)


class TransactionSubmitter(ABC):
    """Signing, submission and wallet-balance capability."""

    @property
    @abstractmethod
    def public_key(self) -> str:
        """Wallet address used as the swap's user."""

    @abstractmethod
    def sign(self, swap_transaction: str) -> bytes:
        """Sign a base64 swap transaction and return the serialized bytes."""

    @abstractmethod
    async def send(self, signed: bytes, trade: dict[str, Any]) -> SubmittedTransaction:
        """Hand a signed transaction to the network."""

    @abstractmethod
    async def confirm(self, submitted: SubmittedTransaction) -> Optional[str]:
        """Wait for confirmation. Returns None on success, else the error."""

    @abstractmethod
    async def get_token_balance(self, mint: str) -> Optional[int]:
        """
        Wallet balance for a mint in the token's smallest unit.

        None means the submitter cannot observe a wallet.
        """

    async def close(self) -> None:
        return None


class ChainTransactionSubmitter(TransactionSubmitter):
    """Live submitter backed by a Solana RPC node."""

    def __init__(
        self,
        rpc_url: str,
        keypair: Keypair,
        client: Optional[AsyncClient] = None,
        max_retries: int = 2,
    ):
        self._keypair = keypair
        self._client = client or AsyncClient(rpc_url, commitment=Confirmed)
        self._max_retries = max_retries

    @classmethod
    def from_private_key(cls, rpc_url: str, private_key_b58: str) -> "ChainTransactionSubmitter":
        return cls(rpc_url, Keypair.from_base58_string(private_key_b58))

    @property
    def public_key(self) -> str:
        return str(self._keypair.pubkey())

    def sign(self, swap_transaction: str) -> bytes:
        unsigned = VersionedTransaction.from_bytes(base64.b64decode(swap_transaction))
        signed = VersionedTransaction(unsigned.message, [self._keypair])
        return bytes(signed)

    async def send(self, signed: bytes, trade: dict[str, Any]) -> SubmittedTransaction:
        latest = await self._client.get_latest_blockhash()
        response = await self._client.send_raw_transaction(
            signed,
            opts=TxOpts(skip_preflight=True, max_retries=self._max_retries),
        )
        signature = str(response.value)
        logger.info(f"Transaction sent: {signature}")
        return SubmittedTransaction(
            signature=signature,
            blockhash=str(latest.value.blockhash),
            last_valid_block_height=latest.value.last_valid_block_height,
            trade=trade,
        )

    async def confirm(self, submitted: SubmittedTransaction) -> Optional[str]:
        try:
            response = await self._client.confirm_transaction(
                Signature.from_string(submitted.signature),
                commitment=Confirmed,
                last_valid_block_height=submitted.last_valid_block_height,
            )
        except Exception as e:
            return f"confirmation failed: {e}"

        statuses = response.value
        if not statuses or statuses[0] is None:
            return "no confirmation status"
        if statuses[0].err:
            return f"transaction error: {statuses[0].err}"
        return None

    async def get_token_balance(self, mint: str) -> Optional[int]:
        response = await self._client.get_token_accounts_by_owner_json_parsed(
            self._keypair.pubkey(),
            TokenAccountOpts(mint=Pubkey.from_string(mint)),
        )
        total = 0
        for account in response.value:
            info = account.account.data.parsed["info"]
            total += int(info["tokenAmount"]["amount"])
        return total

    async def close(self) -> None:
        await self._client.close()


class SimulatedTransactionSubmitter(TransactionSubmitter):
    """Paper-trading submitter. No transaction ever leaves the process."""

    def __init__(self, public_key: str, history_size: int = 100):
        self._public_key = public_key
        self.sent: deque[SubmittedTransaction] = deque(maxlen=history_size)

    @classmethod
    def from_private_key(cls, private_key_b58: str) -> "SimulatedTransactionSubmitter":
        return cls(str(Keypair.from_base58_string(private_key_b58).pubkey()))

    @property
    def public_key(self) -> str:
        return self._public_key

    def sign(self, swap_transaction: str) -> bytes:
        return base64.b64decode(swap_transaction)

    async def send(self, signed: bytes, trade: dict[str, Any]) -> SubmittedTransaction:
        submitted = SubmittedTransaction(
            signature=f"simulated-{uuid.uuid4().hex}",
            simulated=True,
            trade=trade,
        )
        self.sent.append(submitted)
        logger.info(f"Simulated transaction: {json.dumps(trade, default=str)}")
        return submitted

    async def confirm(self, submitted: SubmittedTransaction) -> Optional[str]:
        return None

    async def get_token_balance(self, mint: str) -> Optional[int]:
        return None
