"""Centralized FastAPI exception handlers with structured logging."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from workplace_rbac.features.rbac.errors import RbacError, RoleInUse

from .logging import log_context

_UNHANDLED_LOGGER = logging.getLogger("workplace_rbac.errors")
_HTTP_LOGGER = logging.getLogger("workplace_rbac.http")


def _error_payload(*, code: str, detail: object, **extra: object) -> dict[str, object]:
    payload: dict[str, object] = {"code": code, "detail": detail}
    payload.update(extra)
    return payload


def rbac_exception_handler(request: Request, exc: RbacError) -> JSONResponse:
    """Translate recoverable access-control errors into 4xx responses."""

    extra: dict[str, object] = {}
    if isinstance(exc, RoleInUse):
        extra["count"] = exc.count
    _HTTP_LOGGER.debug(
        "rbac_error",
        extra=log_context(
            path=str(request.url.path),
            method=request.method,
            status_code=exc.status_code,
            code=exc.code,
        ),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(code=exc.code, detail=exc.message, **extra),
    )


def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """4xx responses pass through quietly; 5xx responses are logged."""

    if exc.status_code >= 500:
        _HTTP_LOGGER.error(
            "http_exception",
            extra=log_context(
                path=str(request.url.path),
                method=request.method,
                status_code=exc.status_code,
                detail=exc.detail,
            ),
        )
        detail: object = "Internal server error"
    else:
        detail = exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(code="http_error", detail=detail),
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=_error_payload(
            code="invalid_request",
            detail="Invalid request",
            errors=[
                {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
                for error in exc.errors()
            ],
        ),
    )


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler: opaque 500 body, full stack trace in the logs."""

    _UNHANDLED_LOGGER.exception(
        "unhandled_exception",
        extra=log_context(
            path=str(request.url.path),
            method=request.method,
            exception_type=type(exc).__name__,
        ),
    )
    return JSONResponse(
        status_code=500,
        content=_error_payload(code="internal_error", detail="Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RbacError, rbac_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "http_exception_handler",
    "rbac_exception_handler",
    "register_exception_handlers",
    "unhandled_exception_handler",
    "validation_exception_handler",
]
