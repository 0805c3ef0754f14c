"""Alembic environment for the RBAC schema.

``workplace_rbac.db.migrate`` passes the resolved :class:`Settings` through
``config.attributes``; a bare ``alembic`` invocation falls back to the
``sqlalchemy.url`` option and then to the environment.
"""

from __future__ import annotations

from alembic import context
from sqlalchemy.engine import Connection

import workplace_rbac.models  # noqa: F401  (registers every table on Base.metadata)
from workplace_rbac.db.engine import build_engine
from workplace_rbac.db.metadata import Base
from workplace_rbac.settings import Settings, get_settings

config = context.config


def _settings() -> Settings:
    settings = config.attributes.get("settings")
    if isinstance(settings, Settings):
        return settings
    url = config.get_main_option("sqlalchemy.url")
    if url:
        return Settings(_env_file=None, database_url=url)
    return get_settings()


def _migrate(connection: Connection) -> None:
    # SQLite cannot ALTER most constraints in place; batch mode rebuilds tables.
    context.configure(
        connection=connection,
        target_metadata=Base.metadata,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    settings = _settings()
    context.configure(
        url=settings.database_url,
        target_metadata=Base.metadata,
        literal_binds=True,
        render_as_batch=settings.database_url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    engine = build_engine(_settings())
    try:
        with engine.connect() as connection:
            _migrate(connection)
    finally:
        engine.dispose()
