"""Engine construction for SQLite and Postgres URLs."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.pool import StaticPool

from workplace_rbac.settings import Settings

__all__ = ["READ_ONLY_OPTIONS", "build_engine", "is_sqlite_memory_url"]

# Execution options for connections that only read; SQLite begins them deferred.
READ_ONLY_OPTIONS = {"read_only": True}


def is_sqlite_memory_url(url: URL) -> bool:
    """Return ``True`` when the URL points at an in-memory SQLite database."""

    if url.get_backend_name() != "sqlite":
        return False
    database = (url.database or "").strip()
    if database in {"", ":memory:"}:
        return True
    return database.startswith("file::memory:")


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first DML statement, which breaks
    # SAVEPOINT handling, so the hooks issue BEGIN themselves. Writers take the
    # lock up front; connections marked read-only begin deferred.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record) -> None:  # pragma: no cover - driver hook
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(connection) -> None:  # pragma: no cover - driver hook
        if connection.get_execution_options().get("read_only"):
            connection.exec_driver_sql("BEGIN")
        else:
            connection.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(settings: Settings) -> Engine:
    """Create the SQLAlchemy engine described by ``settings.database_url``."""

    url = make_url(settings.database_url)
    connect_args: dict[str, Any] = {}
    engine_kwargs: dict[str, Any] = {"echo": settings.database_echo}

    sqlite = url.get_backend_name() == "sqlite"
    if sqlite:
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = settings.database_busy_timeout
        if is_sqlite_memory_url(url):
            engine_kwargs["poolclass"] = StaticPool
        elif url.database:
            Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    else:
        engine_kwargs["pool_pre_ping"] = True

    if connect_args:
        engine_kwargs["connect_args"] = connect_args

    engine = create_engine(url, **engine_kwargs)
    if sqlite:
        _install_sqlite_transaction_hooks(engine)
    return engine
