"""
Chain access for grant verification and distribution.

ChainProvider is the seam the grant pipeline talks to. Web3ChainProvider
backs it with a JSON-RPC node; web3 is synchronous, so every call is pushed
to the threadpool and awaited.
"""
from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from starlette.concurrency import run_in_threadpool
from web3 import Web3
from web3.exceptions import TransactionNotFound as Web3TransactionNotFound

logger = logging.getLogger(__name__)

SIMPLE_TRANSFER_GAS = 21_000


@dataclass(frozen=True)
class ChainTransaction:
    hash: str
    sender: str
    to: Optional[str]
    value: int


@dataclass(frozen=True)
class ChainReceipt:
    hash: str
    status: int

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class ChainProvider(ABC):
    """Interface consumed by GrantService."""

    @property
    @abstractmethod
    def signing_enabled(self) -> bool: ...

    @abstractmethod
    async def get_transaction(self, tx_hash: str) -> Optional[ChainTransaction]: ...

    @abstractmethod
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[ChainReceipt]: ...

    @abstractmethod
    async def send_value(self, to: str, amount_wei: int) -> str:
        """Submit a plain value transfer from the treasury; returns the tx hash."""

    def is_valid_address(self, address: str) -> bool:
        return isinstance(address, str) and Web3.is_address(address)


class Web3ChainProvider(ChainProvider):
    def __init__(
        self,
        rpc_url: str,
        *,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        request_timeout: int = 60,
    ):
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        self._account = Account.from_key(private_key) if private_key else None
        self._chain_id = chain_id
        # one outbound transfer at a time so pending nonces never collide
        self._send_lock = threading.Lock()

    @property
    def signing_enabled(self) -> bool:
        return self._account is not None

    @property
    def sender_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    # ─────────── reads ───────────

    def _get_transaction(self, tx_hash: str) -> Optional[ChainTransaction]:
        try:
            tx = self.w3.eth.get_transaction(tx_hash)
        except Web3TransactionNotFound:
            return None
        return ChainTransaction(
            hash=Web3.to_hex(tx["hash"]),
            sender=tx["from"],
            to=tx.get("to"),
            value=int(tx["value"]),
        )

    def _get_receipt(self, tx_hash: str) -> Optional[ChainReceipt]:
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except Web3TransactionNotFound:
            return None
        return ChainReceipt(hash=Web3.to_hex(receipt["transactionHash"]), status=int(receipt["status"]))

    async def get_transaction(self, tx_hash: str) -> Optional[ChainTransaction]:
        return await run_in_threadpool(self._get_transaction, tx_hash)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[ChainReceipt]:
        return await run_in_threadpool(self._get_receipt, tx_hash)

    # ─────────── writes ───────────

    def _fee_fields(self) -> dict:
        latest = self.w3.eth.get_block("latest")
        base_fee = latest.get("baseFeePerGas") or self.w3.to_wei("5", "gwei")
        try:
            priority = self.w3.eth.max_priority_fee
        except Exception:
            priority = self.w3.to_wei("2", "gwei")
        return {
            "maxFeePerGas": int(base_fee * 2 + priority),
            "maxPriorityFeePerGas": int(priority),
        }

    def _send_value(self, to: str, amount_wei: int) -> str:
        if self._account is None:
            raise RuntimeError("treasury signing key not configured")

        with self._send_lock:
            acct = self._account
            tx = {
                "to": Web3.to_checksum_address(to),
                "from": acct.address,
                "value": int(amount_wei),
                "nonce": self.w3.eth.get_transaction_count(acct.address, "pending"),
                "gas": SIMPLE_TRANSFER_GAS,
                "chainId": self._chain_id or self.w3.eth.chain_id,
                **self._fee_fields(),
            }
            signed = acct.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)

        hex_hash = Web3.to_hex(tx_hash)
        logger.info("[chain] submitted transfer %s to %s", hex_hash, to[:10])
        return hex_hash

    async def send_value(self, to: str, amount_wei: int) -> str:
        return await run_in_threadpool(self._send_value, to, amount_wei)
