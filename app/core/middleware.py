import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger("app.access")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with a request-id (incoming header or a fresh uuid4),
    echoes it back on the response and logs one line per request.

    Anything the routes and GrantError handlers let through becomes a 500
    here, so the error still carries the request-id.
    """

    def __init__(self, app, header_name: str = "X-Request-Id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = rid
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "[errors] unhandled error on %s %s",
                request.method,
                request.url.path,
                extra={"request_id": rid},
            )
            response = JSONResponse(
                status_code=500,
                content={"detail": str(exc) or exc.__class__.__name__},
            )
        response.headers[self.header_name] = rid

        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "request_id": rid,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return response
