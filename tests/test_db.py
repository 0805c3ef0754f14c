from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from workplace_rbac.db import Base, build_engine, is_sqlite_memory_url
from workplace_rbac.db.engine import READ_ONLY_OPTIONS
from workplace_rbac.features.rbac.models import Role
from workplace_rbac.features.workplaces.models import Workplace

from conftest import build_test_settings


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("sqlite://", True),
        ("sqlite:///:memory:", True),
        ("sqlite:///file::memory:?cache=shared", True),
        ("sqlite:///./data/rbac.sqlite", False),
        ("postgresql+psycopg://u:p@localhost/db", False),
    ],
)
def test_is_sqlite_memory_url(url: str, expected: bool) -> None:
    assert is_sqlite_memory_url(make_url(url)) is expected


def test_foreign_keys_are_enforced(engine: Engine) -> None:
    with Session(engine) as session:
        session.add(Role(name="orphan", workplace_id="missing", created_by="u"))
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()


def test_datetimes_round_trip_as_aware_utc(session: Session) -> None:
    workplace = Workplace(name="Tz", created_by="u")
    session.add(workplace)
    session.commit()
    session.expire_all()

    loaded = session.scalars(select(Workplace).where(Workplace.id == workplace.id)).one()

    assert loaded.created_at.tzinfo is not None
    assert loaded.created_at.utcoffset() == datetime.now(UTC).utcoffset()


def _contended_engine(tmp_path: Path) -> Engine:
    settings = build_test_settings(
        f"sqlite:///{tmp_path / 'locks.sqlite'}",
        database_busy_timeout=0.1,
    )
    engine = build_engine(settings)
    Base.metadata.create_all(engine)
    return engine


def test_read_only_connections_do_not_take_the_write_lock(tmp_path: Path) -> None:
    engine = _contended_engine(tmp_path)
    try:
        with (
            engine.connect().execution_options(**READ_ONLY_OPTIONS) as first,
            engine.connect().execution_options(**READ_ONLY_OPTIONS) as second,
        ):
            with first.begin(), second.begin():
                assert first.execute(select(Role.id)).all() == []
                assert second.execute(select(Role.id)).all() == []
    finally:
        engine.dispose()


def test_writers_serialize_on_the_database_lock(tmp_path: Path) -> None:
    engine = _contended_engine(tmp_path)
    try:
        with engine.connect() as first, engine.connect() as second:
            with first.begin():
                with pytest.raises(OperationalError):
                    second.begin()
    finally:
        engine.dispose()
