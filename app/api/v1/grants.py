# app/api/v1/grants.py

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.deps import get_grant_service, get_ledger
from app.core.errors import NotFound
from app.core.whitelist import require_whitelist
from app.schemas.grants import GrantCreate, GrantCreateResponse, GrantListResponse, GrantOut
from app.services.grant_service import GrantService
from app.services.ledger_service import GrantLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/grants")


@router.post(
    "",
    status_code=201,
    response_model=GrantCreateResponse,
    dependencies=[Depends(require_whitelist())],
)
async def create_grant(
    body: GrantCreate,
    mock: bool = Query(default=False, description="simulate: no chain lookups, no transfer"),
    svc: GrantService = Depends(get_grant_service),
):
    """
    Create and fund a direct grant.

    txHash is the caller's transfer into the treasury; it is verified and
    the amount minus the platform fee is forwarded to recipient.
    """
    logger.info("[grants] create recipient=%s mock=%s", (body.recipient or "<none>")[:10], mock)
    outcome = await svc.create_grant(body, mock=mock)

    return GrantCreateResponse(
        grant=GrantOut.from_record(outcome.grant),
        mock=mock,
        basescanUrl=outcome.explorer_url,
    )


@router.get("", response_model=GrantListResponse)
async def list_grants(
    recipient: Optional[str] = None,
    grantor: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=0),
    ledger: GrantLedger = Depends(get_ledger),
):
    rows = ledger.list(recipient=recipient, grantor=grantor, limit=limit)
    logger.debug("[grants] list recipient=%s grantor=%s -> %d", recipient, grantor, len(rows))
    return GrantListResponse(
        grants=[GrantOut.from_record(g) for g in rows],
        total=len(rows),
    )


@router.get("/{grant_id}", response_model=GrantOut)
async def get_grant(grant_id: str, ledger: GrantLedger = Depends(get_ledger)):
    grant = ledger.get_by_id(grant_id)
    if not grant:
        raise NotFound("Grant not found")
    return GrantOut.from_record(grant)
