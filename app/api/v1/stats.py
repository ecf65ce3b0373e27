from fastapi import APIRouter, Depends

from app.core.amounts import format_eth
from app.core.deps import get_ledger
from app.schemas.grants import StatsResponse
from app.services.ledger_service import GrantLedger

router = APIRouter()


@router.get("/stats", response_model=StatsResponse)
async def platform_stats(ledger: GrantLedger = Depends(get_ledger)):
    totals = ledger.aggregate_totals()
    return StatsResponse(
        totalGrants=totals.total_grants,
        totalGranted=str(totals.total_granted),
        totalGrantedFormatted=format_eth(totals.total_granted),
        totalFees=str(totals.total_fees),
        totalFeesFormatted=format_eth(totals.total_fees),
        uniqueRecipients=totals.unique_recipients,
        uniqueGrantors=totals.unique_grantors,
    )
