"""FastAPI lifespan for the workplace RBAC application."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import Lifespan
from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from workplace_rbac.common.logging import log_context
from workplace_rbac.db.session import get_session_factory_from_app, init_db, shutdown_db
from workplace_rbac.features.rbac.bootstrap import initialize_on_startup
from workplace_rbac.settings import Settings

logger = logging.getLogger(__name__)

SCHEMA_MISSING_MESSAGE = (
    "Database schema is not initialized. "
    "Run `workplace-rbac migrate` before starting the API."
)


def _check_schema(engine: Engine) -> None:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1 FROM alembic_version"))


def create_application_lifespan(*, settings: Settings) -> Lifespan[FastAPI]:
    """Return the lifespan handler used by the app factory."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        logger.info(
            "workplace_rbac.startup",
            extra=log_context(
                version=settings.app_version,
                bootstrap_on_startup=settings.bootstrap_on_startup,
                grant_expiry_enforced=settings.grant_expiry_enforced,
            ),
        )

        safe_url = make_url(settings.database_url).render_as_string(hide_password=True)
        logger.info("db.init.start", extra={"database_url": safe_url})
        engine = init_db(app, settings)
        try:
            try:
                await asyncio.to_thread(_check_schema, engine)
            except SQLAlchemyError as exc:
                logger.error(
                    "db.schema.missing",
                    extra={"database_url": safe_url},
                    exc_info=True,
                )
                raise RuntimeError(SCHEMA_MISSING_MESSAGE) from exc
            logger.info("db.init.complete", extra={"database_url": safe_url})

            if settings.bootstrap_on_startup:
                await asyncio.to_thread(
                    initialize_on_startup,
                    get_session_factory_from_app(app),
                    actor=settings.system_actor,
                )

            yield
        finally:
            shutdown_db(app)
            logger.info("workplace_rbac.shutdown")

    return lifespan


__all__ = ["SCHEMA_MISSING_MESSAGE", "create_application_lifespan"]
