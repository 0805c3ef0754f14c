"""Sessions for the API process and the command-line tools.

The API opens one session per request. Routes that mutate RBAC state depend on
``get_db_write``, which commits when the handler returns; everything else uses
``get_db_read`` and is rolled back.
"""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from starlette.requests import HTTPConnection

from workplace_rbac.features.rbac.errors import RbacError
from workplace_rbac.settings import Settings, get_settings

from .engine import READ_ONLY_OPTIONS, build_engine

logger = logging.getLogger(__name__)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """One unit of work outside a request: commit on success, roll back on error."""

    with session_factory() as session:
        try:
            yield session
        except BaseException:
            session.rollback()
            raise
        session.commit()


def init_db(app: FastAPI, settings: Settings | None = None) -> Engine:
    """Attach a fresh engine and session factory to ``app.state``."""

    shutdown_db(app)
    engine = build_engine(settings or get_settings())
    app.state.db_engine = engine
    app.state.db_sessionmaker = build_session_factory(engine)
    return engine


def shutdown_db(app: FastAPI) -> None:
    engine: Engine | None = getattr(app.state, "db_engine", None)
    if engine is not None:
        engine.dispose()
    app.state.db_engine = None
    app.state.db_sessionmaker = None


def get_session_factory_from_app(app: FastAPI) -> sessionmaker[Session]:
    factory = getattr(app.state, "db_sessionmaker", None)
    if factory is None:
        raise RuntimeError("Database not initialized. Call init_db(app, ...) at startup.")
    return factory


def get_session_factory(conn: HTTPConnection) -> sessionmaker[Session]:
    return get_session_factory_from_app(conn.app)


def _request_session(request: Request) -> Generator[Session]:
    with get_session_factory(request)() as session:
        try:
            yield session
        except Exception as exc:
            session.rollback()
            if not isinstance(exc, (HTTPException, RequestValidationError, RbacError)):
                logger.warning(
                    "db.session.rollback",
                    extra={"method": request.method, "path": request.url.path},
                    exc_info=exc,
                )
            raise
        if getattr(request.state, "db_force_write", False):
            session.commit()
        else:
            session.rollback()


def get_db_write(
    request: Request,
    session: Annotated[Session, Depends(_request_session)],
) -> Session:
    request.state.db_force_write = True
    return session


def get_db_read(
    request: Request,
    session: Annotated[Session, Depends(_request_session)],
) -> Session:
    if not getattr(request.state, "db_force_write", False):
        # Binds the connection now so SQLite opens a deferred transaction.
        session.connection(execution_options=READ_ONLY_OPTIONS)
    return session


__all__ = [
    "build_session_factory",
    "get_db_read",
    "get_db_write",
    "get_session_factory",
    "get_session_factory_from_app",
    "init_db",
    "session_scope",
    "shutdown_db",
]
