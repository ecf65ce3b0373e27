from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class GrantError(Exception):
    """
    Base for every failure surfaced to API callers.

    `detail` is the client-facing message; `extra` is merged into the JSON
    body next to it (e.g. grantId, expected/got).
    """

    status_code: int = 400
    default_detail: str = "Grant request failed"

    def __init__(self, detail: str | None = None, **extra: Any):
        self.detail = detail or self.default_detail
        self.extra: Dict[str, Any] = extra
        super().__init__(self.detail)

    def to_body(self) -> Dict[str, Any]:
        return {"detail": self.detail, **self.extra}


# ─────────── request validation ───────────

class MissingField(GrantError):
    default_detail = "recipient and txHash required"


class InvalidAddress(GrantError):
    default_detail = "Invalid recipient address"


class InvalidAmount(GrantError):
    default_detail = "Invalid amount"


class DuplicateFundingTransaction(GrantError):
    default_detail = "Transaction already used for grant"

    def __init__(self, grant_id: str, detail: str | None = None):
        super().__init__(detail, grantId=grant_id)
        self.grant_id = grant_id


# ─────────── funding verification ───────────

class TransactionNotFound(GrantError):
    default_detail = "Transaction not found"


class TransactionNotConfirmed(GrantError):
    default_detail = "Transaction failed or pending"


class WrongDestination(GrantError):
    default_detail = "Not sent to treasury"

    def __init__(self, expected: str, got: str | None):
        super().__init__(None, expected=expected, got=got)


# ─────────── distribution ───────────

class DistributionUnavailable(GrantError):
    status_code = 500
    default_detail = "Wallet not configured"


class DistributionFailed(GrantError):
    status_code = 500
    default_detail = "Distribution transfer failed"


# ─────────── whitelist gate ───────────

class MissingAddress(GrantError):
    default_detail = "Address required"


class Forbidden(GrantError):
    status_code = 403
    default_detail = "Invite-only. Tag @owockibot on X to request access."


# ─────────── lookups ───────────

class NotFound(GrantError):
    status_code = 404
    default_detail = "Not found"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GrantError)
    async def _grant_error(request: Request, exc: GrantError):
        logger.info(
            "[errors] %s %s -> %s %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.detail,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())
