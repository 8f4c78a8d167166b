"""FastAPI middleware that tags every request with an X-Request-ID.

The id is bound into structlog contextvars so every log line written while
the request is handled carries it, and one access-log line is emitted when
the response is ready.
"""
from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from structlog.contextvars import bind_contextvars, clear_contextvars

logger = structlog.get_logger("jobly.access")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's request id when given one, otherwise mint a UUID4 hex."""

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:  # type: ignore[override]
        request_id = request.headers.get(self.header_name) or uuid.uuid4().hex
        bind_contextvars(request_id=request_id)
        request.state.request_id = request_id

        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
            logger.info(
                "request",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        finally:
            # Avoid leaking the id into the next request on this worker
            clear_contextvars()

        response.headers[self.header_name] = request_id
        return response
