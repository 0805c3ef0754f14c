"""Request-id propagation and per-request access logs."""

from __future__ import annotations

import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from .logging import bind_request_context, clear_request_context, log_context

logger = logging.getLogger("workplace_rbac.request")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind the caller's request id (or mint one) and echo it on the response."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        header_name: str = "X-Request-Id",
        actor_header: str = "X-Actor-Id",
    ) -> None:
        super().__init__(app)
        self._header_name = header_name
        self._actor_header = actor_header

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self._header_name) or uuid4().hex
        request.state.correlation_id = request_id
        bind_request_context(request_id)
        started = time.perf_counter()

        def _context(status_code: int | None) -> dict[str, object]:
            return log_context(
                actor=request.headers.get(self._actor_header),
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
            )

        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.error("request.error", extra=_context(None))
                raise
            logger.info("request.complete", extra=_context(response.status_code))
        finally:
            clear_request_context()

        response.headers[self._header_name] = request_id
        return response


def register_middleware(app: FastAPI, *, request_id_header: str, actor_header: str) -> None:
    app.add_middleware(
        RequestContextMiddleware,
        header_name=request_id_header,
        actor_header=actor_header,
    )


__all__ = ["RequestContextMiddleware", "register_middleware"]
