from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.agent import router as agent_router
from app.api.v1.grants import router as grants_router
from app.api.v1.grantors import router as grantors_router
from app.api.v1.stats import router as stats_router
from app.api.v1.e2e import router as e2e_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / DOCS
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(agent_router, tags=["agent"])

# ------------------------------------------------------------------
# GRANTS
# ------------------------------------------------------------------
v1_router.include_router(grants_router, tags=["grants"])
v1_router.include_router(grantors_router, tags=["grantors"])
v1_router.include_router(stats_router, tags=["stats"])

# ------------------------------------------------------------------
# MANUAL TESTING
# ------------------------------------------------------------------
v1_router.include_router(e2e_router, tags=["e2e"])
