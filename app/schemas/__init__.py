from app.schemas.grants import (
    GrantCreate,
    E2ERequest,
    GrantOut,
    GrantCreateResponse,
    GrantListResponse,
    GrantorStatsResponse,
    StatsResponse,
    E2EResponse,
)
