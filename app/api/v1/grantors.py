# app/api/v1/grantors.py

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.deps import get_ledger
from app.core.errors import InvalidAddress
from app.schemas.grants import GrantorStatsResponse
from app.services.ledger_service import GrantLedger

router = APIRouter(prefix="/grantors")


@router.get("/{address}", response_model=GrantorStatsResponse)
async def get_grantor(address: str, request: Request, ledger: GrantLedger = Depends(get_ledger)):
    """
    Totals for one grantor plus their most recent grants.
    Unknown grantors get zeroed totals, not a 404.
    """
    if not request.app.state.chain.is_valid_address(address):
        raise InvalidAddress("Invalid address")

    stats, recent = ledger.get_grantor_stats(address)
    return GrantorStatsResponse.build(address, stats, recent)
