from fastapi import APIRouter, Depends, Request

from app.core.config import Settings
from app.core.deps import get_app_settings

router = APIRouter()


@router.get("/health")
async def health(request: Request, settings: Settings = Depends(get_app_settings)):
    rid = getattr(request.state, "request_id", None)
    return {
        "status": "ok",
        "platform": settings.app_name,
        "network": settings.network_name,
        "treasury": settings.treasury_address,
        "payoutsEnabled": request.app.state.chain.signing_enabled,
        "feePercent": settings.fee_percent,
        "request_id": rid,
    }
