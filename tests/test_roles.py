from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from workplace_rbac.features.rbac.errors import (
    DuplicateName,
    NotFound,
    RbacError,
    RoleInUse,
    SystemRoleImmutable,
)
from workplace_rbac.features.rbac.roles import RoleStore, normalize_role_name
from workplace_rbac.features.workplaces.models import MembershipStatus
from workplace_rbac.features.workplaces.service import WorkplacesService

from conftest import SeededWorkplace, seed_workplace


def test_normalize_role_name() -> None:
    assert normalize_role_name("  Reviewer ") == "reviewer"
    with pytest.raises(RbacError):
        normalize_role_name("   ")
    with pytest.raises(RbacError):
        normalize_role_name("x" * 101)


def test_create_rejects_duplicate_active_name(session: Session, seeded: SeededWorkplace) -> None:
    store = RoleStore(session=session)
    store.create(workplace_id=seeded.id, name="Reviewer", description=None, created_by="o")

    with pytest.raises(DuplicateName):
        store.create(workplace_id=seeded.id, name="reviewer", description=None, created_by="o")
    with pytest.raises(DuplicateName):
        store.create(workplace_id=seeded.id, name="admin", description=None, created_by="o")


def test_same_name_is_allowed_in_another_workplace(
    session: Session, seeded: SeededWorkplace
) -> None:
    other = seed_workplace(
        session,
        name="Globex",
        owner_id="owner-2",
        admin_id="admin-2",
        member_id="member-2",
    )
    store = RoleStore(session=session)

    first = store.create(workplace_id=seeded.id, name="reviewer", description=None, created_by="o")
    second = store.create(workplace_id=other.id, name="reviewer", description=None, created_by="o")

    assert first.id != second.id


def test_name_is_reusable_after_soft_delete(session: Session, seeded: SeededWorkplace) -> None:
    store = RoleStore(session=session)
    role = store.create(workplace_id=seeded.id, name="temp", description=None, created_by="o")
    store.soft_delete(role_id=role.id, deleted_by="o")

    replacement = store.create(
        workplace_id=seeded.id,
        name="temp",
        description=None,
        created_by="o",
    )

    assert replacement.id != role.id
    assert store.get(role.id) is None
    assert store.get(role.id, include_inactive=True) is not None


def test_update_renames_and_checks_uniqueness(session: Session, seeded: SeededWorkplace) -> None:
    store = RoleStore(session=session)
    role = store.create(workplace_id=seeded.id, name="one", description="d", created_by="o")
    store.create(workplace_id=seeded.id, name="two", description=None, created_by="o")

    updated = store.update(role_id=role.id, updated_by="editor", name="Uno", description=" new ")
    assert updated.name == "uno"
    assert updated.description == "new"
    assert updated.updated_by == "editor"

    with pytest.raises(DuplicateName):
        store.update(role_id=role.id, updated_by="editor", name="two")


def test_system_roles_are_immutable(session: Session, seeded: SeededWorkplace) -> None:
    store = RoleStore(session=session)

    with pytest.raises(SystemRoleImmutable):
        store.update(role_id=seeded.admin_role_id, updated_by="o", name="boss")
    with pytest.raises(SystemRoleImmutable):
        store.soft_delete(role_id=seeded.member_role_id, deleted_by="o")


def test_delete_refuses_role_with_active_members(
    session: Session, seeded: SeededWorkplace
) -> None:
    store = RoleStore(session=session)
    role = store.create(workplace_id=seeded.id, name="crew", description=None, created_by="o")
    service = WorkplacesService(session=session)
    service.add_member(workplace_id=seeded.id, user_id="u-1", role_name="crew")
    service.add_member(workplace_id=seeded.id, user_id="u-2", role_name="crew")

    with pytest.raises(RoleInUse) as excinfo:
        store.soft_delete(role_id=role.id, deleted_by="o")

    assert excinfo.value.count == 2
    assert store.get(role.id) is not None


def test_pending_members_do_not_block_delete(session: Session, seeded: SeededWorkplace) -> None:
    store = RoleStore(session=session)
    role = store.create(workplace_id=seeded.id, name="crew", description=None, created_by="o")
    WorkplacesService(session=session).add_member(
        workplace_id=seeded.id,
        user_id="u-1",
        role_name="crew",
        status=MembershipStatus.PENDING,
    )

    deleted = store.soft_delete(role_id=role.id, deleted_by="o")

    assert deleted.active is False


def test_missing_role_is_not_found(session: Session) -> None:
    store = RoleStore(session=session)
    with pytest.raises(NotFound):
        store.update(role_id="missing", updated_by="o", name="x")
    with pytest.raises(NotFound):
        store.soft_delete(role_id="missing", deleted_by="o")


def test_parent_must_exist(session: Session, seeded: SeededWorkplace) -> None:
    store = RoleStore(session=session)
    with pytest.raises(NotFound):
        store.create(
            workplace_id=seeded.id,
            name="child",
            description=None,
            created_by="o",
            parent_id="missing",
        )

    child = store.create(
        workplace_id=seeded.id,
        name="child",
        description=None,
        created_by="o",
        parent_id=seeded.member_role_id,
    )
    assert child.parent_id == seeded.member_role_id
