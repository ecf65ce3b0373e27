from contextlib import asynccontextmanager
from typing import Optional

from app.core.config import Settings, get_settings
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import RequestIdMiddleware
from app.core.whitelist import WhitelistCache
from app.api.v1.router import v1_router
from app.services.chain_service import ChainProvider, Web3ChainProvider
from app.services.grant_service import GrantService
from app.services.ledger_service import GrantLedger

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


def create_app(
    settings: Optional[Settings] = None,
    *,
    chain: Optional[ChainProvider] = None,
    ledger: Optional[GrantLedger] = None,
    whitelist: Optional[WhitelistCache] = None,
) -> FastAPI:
    """
    Build the app and its collaborators. Tests pass their own chain /
    ledger / whitelist; production builds them from settings.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    if chain is None:
        chain = Web3ChainProvider(
            settings.base_rpc,
            private_key=settings.treasury_private_key,
            chain_id=settings.chain_id,
            request_timeout=settings.chain_request_timeout_seconds,
        )
    if ledger is None:
        ledger = GrantLedger.from_url(settings.database_url)
    if whitelist is None:
        whitelist = WhitelistCache(settings.whitelist_url, settings.whitelist_cache_ttl_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        ledger.dispose()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.chain = chain
    app.state.ledger = ledger
    app.state.whitelist = whitelist
    app.state.grant_service = GrantService(
        ledger,
        chain,
        treasury_address=settings.treasury_address,
        fee_percent=settings.fee_percent,
        explorer_tx_url=settings.explorer_tx_url,
    )

    # Middleware: Request ID (also turns unhandled errors into 500s)
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)
    # added last so it wraps everything, error responses included
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    register_exception_handlers(app)

    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
