from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from workplace_rbac.db import utc_now
from workplace_rbac.features.rbac.errors import NotFound, UnknownPermission
from workplace_rbac.features.rbac.grants import GrantLedger
from workplace_rbac.features.rbac.models import Role, RoleGrant
from workplace_rbac.features.rbac.registry import PERMISSIONS
from workplace_rbac.features.rbac.resolution import PermissionResolver
from workplace_rbac.features.rbac.roles import RoleStore

from conftest import SeededWorkplace


def _custom_role(session: Session, seeded: SeededWorkplace, name: str = "reviewer") -> Role:
    return RoleStore(session=session).create(
        workplace_id=seeded.id,
        name=name,
        description=None,
        created_by=seeded.owner_id,
    )


def _active_names(session: Session, role_id: str) -> set[str]:
    return {
        grant.permission.name for grant in GrantLedger(session=session).active_grants(role_id)
    }


def test_replace_sets_exact_active_grants(session: Session, seeded: SeededWorkplace) -> None:
    role = _custom_role(session, seeded)
    ledger = GrantLedger(session=session)

    ledger.replace(role_id=role.id, permission_names=["task.view", "task.create"], granted_by="o")
    ledger.replace(role_id=role.id, permission_names=["file.view"], granted_by="o")

    assert _active_names(session, role.id) == {"file.view"}


def test_replace_keeps_history_of_revoked_grants(
    session: Session, seeded: SeededWorkplace
) -> None:
    role = _custom_role(session, seeded)
    ledger = GrantLedger(session=session)

    ledger.replace(role_id=role.id, permission_names=["task.view"], granted_by="first")
    ledger.replace(role_id=role.id, permission_names=["task.view"], granted_by="second")

    history = ledger.history(role.id)
    assert len(history) == 2
    assert [grant.active for grant in history].count(True) == 1
    assert {grant.granted_by for grant in history if grant.active} == {"second"}


def test_replace_with_empty_list_revokes_everything(
    session: Session, seeded: SeededWorkplace
) -> None:
    role = _custom_role(session, seeded)
    ledger = GrantLedger(session=session)
    ledger.replace(role_id=role.id, permission_names=["task.view"], granted_by="o")

    ledger.replace(role_id=role.id, permission_names=[], granted_by="o")

    assert ledger.active_grants(role.id) == []


def test_wildcard_expands_to_whole_active_catalog(
    session: Session, seeded: SeededWorkplace
) -> None:
    role = _custom_role(session, seeded)

    grants = GrantLedger(session=session).replace(
        role_id=role.id,
        permission_names=["*"],
        granted_by="o",
    )

    assert len(grants) == len(PERMISSIONS)


def test_unknown_permission_leaves_grants_untouched(
    session: Session, seeded: SeededWorkplace
) -> None:
    role = _custom_role(session, seeded)
    ledger = GrantLedger(session=session)
    ledger.replace(role_id=role.id, permission_names=["task.view"], granted_by="o")

    with pytest.raises(UnknownPermission):
        ledger.replace(role_id=role.id, permission_names=["file.view", "nope.nope"], granted_by="o")

    assert _active_names(session, role.id) == {"task.view"}


def test_replace_requires_existing_role(session: Session) -> None:
    with pytest.raises(NotFound):
        GrantLedger(session=session).replace(
            role_id="01HZZZZZZZZZZZZZZZZZZZZZZZ",
            permission_names=["task.view"],
            granted_by="o",
        )


def test_revoke_deactivates_single_grant(session: Session, seeded: SeededWorkplace) -> None:
    role = _custom_role(session, seeded)
    ledger = GrantLedger(session=session)
    ledger.replace(role_id=role.id, permission_names=["task.view", "file.view"], granted_by="o")

    revoked = ledger.revoke(role_id=role.id, permission_name="task.view", revoked_by="o")

    assert revoked.active is False
    assert _active_names(session, role.id) == {"file.view"}
    with pytest.raises(NotFound):
        ledger.revoke(role_id=role.id, permission_name="task.view", revoked_by="o")


def test_at_most_one_active_grant_per_permission(
    session: Session, seeded: SeededWorkplace
) -> None:
    role = _custom_role(session, seeded)
    ledger = GrantLedger(session=session)
    for _ in range(3):
        ledger.replace(role_id=role.id, permission_names=["task.view"], granted_by="o")

    active = session.scalars(
        select(RoleGrant).where(RoleGrant.role_id == role.id, RoleGrant.active.is_(True))
    ).all()
    assert len(active) == 1


def test_expired_grants_drop_out_of_resolution(
    session: Session, seeded: SeededWorkplace
) -> None:
    role = _custom_role(session, seeded)
    GrantLedger(session=session).replace(
        role_id=role.id,
        permission_names=["task.view"],
        granted_by="o",
        expires_at=utc_now() + timedelta(hours=1),
    )

    now = PermissionResolver(session=session)
    later = PermissionResolver(session=session, clock=lambda: utc_now() + timedelta(hours=2))
    unenforced = PermissionResolver(
        session=session,
        enforce_expiry=False,
        clock=lambda: utc_now() + timedelta(hours=2),
    )

    assert now.resolve(role.id) == frozenset({"task.view"})
    assert later.resolve(role.id) == frozenset()
    assert unenforced.resolve(role.id) == frozenset({"task.view"})
