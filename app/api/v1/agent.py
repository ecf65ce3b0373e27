from fastapi import APIRouter, Depends

from app.core.config import Settings
from app.core.deps import get_app_settings

router = APIRouter()


@router.get("/agent")
async def agent_docs(settings: Settings = Depends(get_app_settings)):
    """Machine-readable description of the API for agents."""
    net_percent = 100 - settings.fee_percent
    return {
        "name": settings.app_name,
        "description": (
            "Simplest funding mechanism. Send ETH to treasury, specify recipient - "
            "funds forwarded instantly. Perfect for AI agents funding work quickly."
        ),
        "network": f"{settings.network_name} (chainId {settings.chain_id})",
        "treasury": settings.treasury_address,
        "treasury_fee": f"{settings.fee_percent}%",
        "endpoints": [
            {
                "method": "POST",
                "path": "/grants",
                "description": "Create and fund a direct grant (send ETH to treasury first)",
                "body": {
                    "recipient": "string - required, payout address",
                    "reason": "string - description of grant",
                    "txHash": "string - required, your tx sending ETH to treasury",
                    "grantor": "string - optional, defaults to tx sender",
                    "address": "string - required, your whitelisted address",
                },
                "query": {"mock": "boolean - simulate without touching the chain"},
                "returns": {"grant": "object", "basescanUrl": "string - link to distribution tx"},
            },
            {
                "method": "GET",
                "path": "/grants",
                "description": "List all grants, optionally filter by recipient or grantor",
                "query": {
                    "recipient": "string - filter by recipient address",
                    "grantor": "string - filter by grantor address",
                    "limit": "number",
                },
                "returns": {"grants": "array of grant objects", "total": "number"},
            },
            {
                "method": "GET",
                "path": "/grants/{id}",
                "description": "Get grant details by ID",
                "returns": {
                    "id": "string",
                    "recipient": "string",
                    "grantor": "string",
                    "netAmount": "string",
                    "reason": "string",
                    "distributionTxHash": "string",
                },
            },
            {
                "method": "GET",
                "path": "/grantors/{address}",
                "description": "Get grantor stats and recent grants",
                "returns": {"totalGrants": "number", "totalAmount": "string", "recentGrants": "array"},
            },
            {
                "method": "GET",
                "path": "/stats",
                "description": "Platform statistics",
                "returns": {
                    "totalGrants": "number",
                    "totalGranted": "string",
                    "uniqueRecipients": "number",
                    "uniqueGrantors": "number",
                },
            },
            {
                "method": "POST",
                "path": "/test/e2e",
                "description": "Verify a funding tx and send the grant in one call",
                "body": {"txHash": "string - required", "recipient": "string - optional, defaults to treasury"},
            },
        ],
        "example_flow": [
            f"1. Send ETH to treasury: {settings.treasury_address}",
            "2. POST /grants with { recipient, reason, txHash, address }",
            f"3. Recipient receives {net_percent}% instantly ({settings.fee_percent}% fee)",
        ],
        "x402_enabled": False,
    }
