# app/api/v1/e2e.py

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from app.core.amounts import format_eth
from app.core.deps import get_grant_service
from app.core.errors import GrantError
from app.schemas.grants import E2ERequest, E2EResponse, GrantOut
from app.services.grant_service import GrantService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/test")


@router.post("/e2e", response_model=E2EResponse)
async def e2e_grant(body: E2ERequest, svc: GrantService = Depends(get_grant_service)):
    """
    Manual end-to-end check: verify a real funding tx and send the grant
    in one call. Failures carry the steps reached so far.
    """
    steps: List[Dict[str, Any]] = []
    try:
        outcome = await svc.run_e2e(body.txHash, body.recipient, trail=steps)
    except GrantError as exc:
        exc.extra["steps"] = steps
        raise

    grant = outcome.grant
    split = outcome.split
    logger.info("[e2e] grant %s sent %s", grant.id, grant.distribution_tx_hash)

    return E2EResponse(
        grant=GrantOut.from_record(grant),
        steps=steps,
        summary={
            "funded": format_eth(split.gross),
            "fee": f"{format_eth(split.fee)} ({svc.fee_percent}%)",
            "sent": format_eth(split.net),
            "recipient": grant.recipient,
            "txHash": grant.distribution_tx_hash,
            "basescanUrl": outcome.explorer_url,
        },
    )
