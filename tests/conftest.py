from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import workplace_rbac.models  # noqa: F401
from workplace_rbac.db import Base, build_engine
from workplace_rbac.db.session import build_session_factory
from workplace_rbac.features.rbac.bootstrap import BootstrapResult
from workplace_rbac.features.rbac.catalog import sync_catalog
from workplace_rbac.features.workplaces.service import WorkplacesService
from workplace_rbac.settings import Settings


@dataclass(frozen=True, slots=True)
class SeededWorkplace:
    id: str
    owner_id: str
    admin_id: str
    member_id: str
    roles: BootstrapResult

    @property
    def owner_role_id(self) -> str:
        assert self.roles.owner is not None
        return self.roles.owner.id

    @property
    def admin_role_id(self) -> str:
        assert self.roles.admin is not None
        return self.roles.admin.id

    @property
    def member_role_id(self) -> str:
        assert self.roles.member is not None
        return self.roles.member.id


def build_test_settings(database_url: str = "sqlite:///:memory:", **overrides: object) -> Settings:
    values: dict[str, object] = {"bootstrap_on_startup": False, "log_level": "WARNING"}
    values.update(overrides)
    return Settings(_env_file=None, database_url=database_url, **values)


def seed_workplace(
    session: Session,
    *,
    name: str = "Acme",
    owner_id: str = "owner-1",
    admin_id: str = "admin-1",
    member_id: str = "member-1",
) -> SeededWorkplace:
    service = WorkplacesService(session=session)
    workplace, roles = service.create_workplace(name=name, created_by=owner_id)
    service.add_member(workplace_id=workplace.id, user_id=admin_id, role_name="admin")
    service.add_member(workplace_id=workplace.id, user_id=member_id, role_name="member")
    session.commit()
    return SeededWorkplace(
        id=workplace.id,
        owner_id=owner_id,
        admin_id=admin_id,
        member_id=member_id,
        roles=roles,
    )


@pytest.fixture()
def settings() -> Settings:
    return build_test_settings()


@pytest.fixture()
def engine(settings: Settings) -> Iterator[Engine]:
    engine = build_engine(settings)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def file_engine(tmp_path: Path) -> Iterator[Engine]:
    """Engine on a file database, for tests that need several connections."""

    engine = build_engine(build_test_settings(f"sqlite:///{tmp_path / 'rbac.sqlite'}"))
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    factory = build_session_factory(engine)
    with factory() as session:
        sync_catalog(session)
        session.commit()
    return factory


@pytest.fixture()
def session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def seeded(session: Session) -> SeededWorkplace:
    return seed_workplace(session)
