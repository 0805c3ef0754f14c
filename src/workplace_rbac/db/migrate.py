"""Programmatic Alembic runner."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from workplace_rbac.settings import Settings, get_settings

from .engine import build_engine

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

__all__ = ["MIGRATIONS_DIR", "alembic_config", "current_revision", "run_migrations"]


def alembic_config(settings: Settings | None = None) -> Config:
    """Build an Alembic config pointing at the packaged migrations."""

    settings = settings or get_settings()
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", settings.database_url.replace("%", "%%"))
    config.attributes["settings"] = settings
    return config


def run_migrations(settings: Settings | None = None, *, revision: str = "head") -> None:
    settings = settings or get_settings()
    logger.info("db.migrate.start", extra={"revision": revision})
    command.upgrade(alembic_config(settings), revision)
    logger.info("db.migrate.complete", extra={"revision": revision})


def current_revision(settings: Settings | None = None) -> str | None:
    """Return the revision stamped in ``alembic_version``, if any."""

    settings = settings or get_settings()
    engine = build_engine(settings)
    try:
        with engine.connect() as connection:
            if not inspect(connection).has_table("alembic_version"):
                return None
            return connection.exec_driver_sql(
                "SELECT version_num FROM alembic_version"
            ).scalar_one_or_none()
    finally:
        engine.dispose()
