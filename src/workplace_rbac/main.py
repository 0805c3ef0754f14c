"""Workplace RBAC FastAPI application entry point."""

from __future__ import annotations

from fastapi import FastAPI

from .api.router import create_api_router
from .common.exceptions import register_exception_handlers
from .common.logging import setup_logging
from .common.middleware import register_middleware
from .lifecycles import create_application_lifespan
from .settings import Settings, get_settings


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the workplace RBAC application."""
    # Settings + logging first so everything else uses the configured root logger.
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=create_application_lifespan(settings=settings),
    )
    app.state.settings = settings

    register_exception_handlers(app)
    register_middleware(
        app,
        request_id_header=settings.request_id_header,
        actor_header=settings.actor_header,
    )
    app.include_router(create_api_router(), prefix=settings.api_prefix)
    return app


__all__ = ["create_app"]
