# app/services/grant_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from app.core.amounts import format_eth, parse_eth
from app.core.errors import (
    DistributionFailed,
    DistributionUnavailable,
    DuplicateFundingTransaction,
    InvalidAddress,
    MissingField,
    TransactionNotConfirmed,
    TransactionNotFound,
    WrongDestination,
)
from app.core.locks import KeyedLocks
from app.models.grant import GrantRecord
from app.schemas.grants import GrantCreate
from app.services.chain_service import ChainProvider
from app.services.ledger_service import GrantLedger

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Direct grant"
E2E_REASON = "E2E Test Grant"

MOCK_SENDER = "0x" + "1" * 40
MOCK_AMOUNT_WEI = 10**16  # 0.01 ETH


@dataclass(frozen=True)
class FeeSplit:
    gross: int
    fee: int
    net: int


def split_fee(gross: int, fee_percent: int) -> FeeSplit:
    """
    fee = floor(gross * pct / 100), net = gross - fee.
    Integer arithmetic only.
    """
    if gross < 0:
        raise ValueError("gross amount must be non-negative")
    if not 0 <= fee_percent < 100:
        raise ValueError("fee_percent must be in [0, 100)")
    fee = (gross * fee_percent) // 100
    return FeeSplit(gross=gross, fee=fee, net=gross - fee)


@dataclass(frozen=True)
class GrantOutcome:
    grant: GrantRecord
    explorer_url: str
    split: FeeSplit


class GrantService:
    """
    Verify -> split -> distribute -> record.

    A grant is written only after the outbound transfer succeeded. Everything
    after validation runs under a lock keyed by the funding tx hash, so one
    funding proof yields at most one distribution.
    """

    def __init__(
        self,
        ledger: GrantLedger,
        chain: ChainProvider,
        *,
        treasury_address: str,
        fee_percent: int = 5,
        explorer_tx_url: str = "https://basescan.org/tx/",
    ):
        self.ledger = ledger
        self.chain = chain
        self.treasury_address = treasury_address
        self.fee_percent = fee_percent
        self.explorer_tx_url = explorer_tx_url
        self._locks = KeyedLocks()

    def explorer_url(self, tx_hash: str) -> str:
        return f"{self.explorer_tx_url}{tx_hash}"

    def funding_instructions(self, endpoint: str = "/grants") -> Dict[str, str]:
        return {
            "step1": f"Send ETH to treasury: {self.treasury_address}",
            "step2": f"POST {endpoint} with txHash and recipient",
        }

    # ─────────────────────────────────────────────
    # PIPELINE STEPS
    # ─────────────────────────────────────────────

    def _validate(self, req: GrantCreate) -> None:
        if not req.recipient or not req.txHash:
            raise MissingField(
                example={
                    "recipient": "0x...",
                    "amount": "0.01",
                    "reason": "Great work on the docs",
                    "txHash": "0x...",
                },
                instructions=self.funding_instructions(),
            )
        if not self.chain.is_valid_address(req.recipient):
            raise InvalidAddress()

    async def _verify_funding(self, tx_hash: str) -> Tuple[int, str]:
        tx = await self.chain.get_transaction(tx_hash)
        if tx is None:
            raise TransactionNotFound()

        receipt = await self.chain.get_transaction_receipt(tx_hash)
        if receipt is None or not receipt.succeeded:
            raise TransactionNotConfirmed()

        if (tx.to or "").lower() != self.treasury_address.lower():
            raise WrongDestination(expected=self.treasury_address, got=tx.to)

        return tx.value, tx.sender

    async def _distribute(self, recipient: str, amount_wei: int) -> str:
        if not self.chain.signing_enabled:
            raise DistributionUnavailable()
        try:
            return await self.chain.send_value(recipient, amount_wei)
        except Exception as exc:
            logger.error("[grants] distribution to %s failed: %s", recipient[:10], exc)
            raise DistributionFailed(str(exc) or None)

    # ─────────────────────────────────────────────
    # PUBLIC API
    # ─────────────────────────────────────────────

    async def create_grant(
        self,
        req: GrantCreate,
        *,
        mock: bool = False,
        trail: Optional[List[Dict[str, Any]]] = None,
    ) -> GrantOutcome:
        """
        Run the full grant pipeline for one request.

        `mock` skips every chain call: gross amount and sender come from the
        request (or fixed defaults) and the distribution hash is synthetic.
        `trail`, when given, collects progress entries for the e2e endpoint.
        """
        steps = trail if trail is not None else []
        self._validate(req)

        async with self._locks.hold(req.txHash.lower()):
            existing = self.ledger.find_by_funding_tx(req.txHash)
            if existing:
                raise DuplicateFundingTransaction(existing.id)

            if mock:
                gross = parse_eth(req.amount) if req.amount else MOCK_AMOUNT_WEI
                sender = req.grantor or MOCK_SENDER
            else:
                steps.append({"step": 1, "action": "Verifying transaction..."})
                gross, sender = await self._verify_funding(req.txHash)
                steps.append({"step": 1, "status": "verified", "from": sender, "amount": format_eth(gross)})

            split = split_fee(gross, self.fee_percent)

            if mock:
                distribution_hash = "0xmock" + uuid.uuid4().hex
            else:
                steps.append({"step": 2, "action": "Sending grant..."})
                distribution_hash = await self._distribute(req.recipient, split.net)
                steps.append(
                    {
                        "step": 2,
                        "status": "sent",
                        "txHash": distribution_hash,
                        "recipient": req.recipient,
                        "netAmount": format_eth(split.net),
                    }
                )

            reason = req.reason or DEFAULT_REASON
            try:
                grant = self.ledger.insert(
                    recipient=req.recipient,
                    grantor=req.grantor or sender,
                    reason=reason,
                    gross_amount=split.gross,
                    fee=split.fee,
                    net_amount=split.net,
                    funding_tx_hash=req.txHash,
                    distribution_tx_hash=distribution_hash,
                    mock=mock,
                )
            except Exception:
                # the transfer is out; this line is the only record of it
                logger.error(
                    "[grants] distribution %s for funding tx %s (%s to %s) not recorded",
                    distribution_hash,
                    req.txHash,
                    format_eth(split.net),
                    req.recipient,
                )
                raise

        logger.info('[grants] %s to %s... - "%s"', format_eth(split.net), req.recipient[:10], reason)
        return GrantOutcome(grant=grant, explorer_url=self.explorer_url(distribution_hash), split=split)

    async def run_e2e(
        self,
        tx_hash: Optional[str],
        recipient: Optional[str] = None,
        *,
        trail: Optional[List[Dict[str, Any]]] = None,
    ) -> GrantOutcome:
        """
        Live grant in one call; recipient defaults to the treasury itself.
        """
        if not tx_hash:
            raise MissingField("txHash required", instructions=self.funding_instructions("/test/e2e"))

        req = GrantCreate(
            recipient=recipient or self.treasury_address,
            txHash=tx_hash,
            reason=E2E_REASON,
        )
        return await self.create_grant(req, mock=False, trail=trail)
