from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.amounts import format_eth
from app.models.grant import GrantRecord, GrantorStats


def _iso(dt):
    return dt.isoformat() if dt else None


class GrantCreate(BaseModel):
    """
    POST /grants body. Every field is optional at the schema level so that
    missing recipient/txHash surface as MissingField, not a 422.
    Extra keys (address, creator, ...) are the whitelist gate's business.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    recipient: Optional[str] = None
    amount: Optional[str] = Field(default=None, description="ETH, simulated mode only")
    reason: Optional[str] = None
    txHash: Optional[str] = Field(default=None, description="tx that sent ETH to the treasury")
    grantor: Optional[str] = Field(default=None, description="defaults to the funding tx sender")


class E2ERequest(BaseModel):
    txHash: Optional[str] = None
    recipient: Optional[str] = None


class GrantOut(BaseModel):
    id: str
    recipient: str
    grantor: str
    reason: str

    grossAmount: str
    grossAmountFormatted: str
    fee: str
    feeFormatted: str
    netAmount: str
    netAmountFormatted: str

    fundingTxHash: str
    distributionTxHash: str
    status: str
    mock: bool = False
    createdAt: str

    @classmethod
    def from_record(cls, g: GrantRecord) -> "GrantOut":
        return cls(
            id=g.id,
            recipient=g.recipient,
            grantor=g.grantor,
            reason=g.reason,
            grossAmount=g.gross_amount_wei,
            grossAmountFormatted=format_eth(g.gross_amount),
            fee=g.fee_wei,
            feeFormatted=format_eth(g.fee),
            netAmount=g.net_amount_wei,
            netAmountFormatted=format_eth(g.net_amount),
            fundingTxHash=g.funding_tx_hash,
            distributionTxHash=g.distribution_tx_hash,
            status=g.status,
            mock=bool(g.mock),
            createdAt=_iso(g.created_at),
        )


class GrantCreateResponse(BaseModel):
    success: bool = True
    grant: GrantOut
    mock: bool = False
    basescanUrl: str


class GrantListResponse(BaseModel):
    grants: List[GrantOut]
    total: int


class GrantorStatsResponse(BaseModel):
    address: str
    totalGrants: int
    totalAmount: str
    totalAmountFormatted: str
    recentGrants: List[GrantOut] = Field(default_factory=list)

    @classmethod
    def build(cls, address: str, stats: Optional[GrantorStats], recent: List[GrantRecord]) -> "GrantorStatsResponse":
        total = stats.total_amount if stats else 0
        return cls(
            address=address.lower(),
            totalGrants=stats.total_grants if stats else 0,
            totalAmount=str(total),
            totalAmountFormatted=format_eth(total),
            recentGrants=[GrantOut.from_record(g) for g in recent],
        )


class StatsResponse(BaseModel):
    totalGrants: int
    totalGranted: str
    totalGrantedFormatted: str
    totalFees: str
    totalFeesFormatted: str
    uniqueRecipients: int
    uniqueGrantors: int


class E2EResponse(BaseModel):
    success: bool = True
    message: str = "E2E test completed!"
    grant: GrantOut
    steps: List[Dict[str, Any]]
    summary: Dict[str, Any]
