"""Role store: structural invariants for creating, editing and retiring roles.

Capability checks live in the authorization gate; this module only enforces
name uniqueness, system-role immutability and the in-use guard.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workplace_rbac.common.logging import log_context
from workplace_rbac.features.workplaces.models import MembershipStatus, WorkplaceMembership

from .errors import DuplicateName, NotFound, RbacError, RoleInUse, SystemRoleImmutable
from .models import Role

logger = logging.getLogger(__name__)

__all__ = ["RoleStore", "normalize_role_name"]

_MAX_NAME_LENGTH = 100


def normalize_role_name(value: str) -> str:
    candidate = value.strip().lower()
    if not candidate:
        raise RbacError("Role name is required")
    if len(candidate) > _MAX_NAME_LENGTH:
        raise RbacError(f"Role name must be at most {_MAX_NAME_LENGTH} characters")
    return candidate


def _normalize_description(value: str | None) -> str | None:
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


class RoleStore:
    """Persisted roles scoped to workplaces."""

    def __init__(self, *, session: Session) -> None:
        self._session = session

    # ------------- reads -------------------------

    def get(self, role_id: str, *, include_inactive: bool = False) -> Role | None:
        role = self._session.get(Role, role_id)
        if role is None or (not role.active and not include_inactive):
            return None
        return role

    def require(self, role_id: str) -> Role:
        role = self.get(role_id)
        if role is None:
            raise NotFound("Role not found")
        return role

    def get_in_workplace(self, *, role_id: str, workplace_id: str) -> Role | None:
        stmt = select(Role).where(
            Role.id == role_id,
            Role.workplace_id == workplace_id,
            Role.active.is_(True),
        )
        return self._session.scalars(stmt).first()

    def find_by_name(self, *, workplace_id: str | None, name: str) -> Role | None:
        stmt = select(Role).where(
            Role.name == name.strip().lower(),
            Role.active.is_(True),
            (
                Role.workplace_id.is_(None)
                if workplace_id is None
                else Role.workplace_id == workplace_id
            ),
        )
        return self._session.scalars(stmt).first()

    def list_for_workplace(self, workplace_id: str) -> list[Role]:
        stmt = (
            select(Role)
            .where(Role.workplace_id == workplace_id, Role.active.is_(True))
            .order_by(Role.created_at, Role.id)
        )
        return list(self._session.scalars(stmt))

    def system_roles(self, workplace_id: str) -> list[Role]:
        stmt = (
            select(Role)
            .where(
                Role.workplace_id == workplace_id,
                Role.active.is_(True),
                Role.is_system.is_(True),
            )
            .order_by(Role.created_at, Role.id)
        )
        return list(self._session.scalars(stmt))

    def count_active_members(self, role_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(WorkplaceMembership)
            .where(
                WorkplaceMembership.role_id == role_id,
                WorkplaceMembership.status == MembershipStatus.ACTIVE,
            )
        )
        return int(self._session.execute(stmt).scalar_one() or 0)

    # ------------- writes ------------------------

    def _ensure_name_available(
        self,
        *,
        workplace_id: str | None,
        name: str,
        exclude_role_id: str | None = None,
    ) -> None:
        existing = self.find_by_name(workplace_id=workplace_id, name=name)
        if existing is not None and existing.id != exclude_role_id:
            raise DuplicateName(name, workplace_id)

    def _flush_role(self, role: Role, *, workplace_id: str | None, new: bool = False) -> None:
        # The partial unique index settles races the pre-check cannot see.
        try:
            with self._session.begin_nested():
                if new:
                    self._session.add(role)
                self._session.flush([role])
        except IntegrityError as exc:
            raise DuplicateName(role.name, workplace_id) from exc

    def create(
        self,
        *,
        workplace_id: str | None,
        name: str,
        description: str | None,
        created_by: str,
        is_system: bool = False,
        parent_id: str | None = None,
    ) -> Role:
        normalized = normalize_role_name(name)
        self._ensure_name_available(workplace_id=workplace_id, name=normalized)
        if parent_id is not None and self.get(parent_id) is None:
            raise NotFound("Parent role not found")

        role = Role(
            name=normalized,
            description=_normalize_description(description),
            is_system=is_system,
            parent_id=parent_id,
            workplace_id=workplace_id,
            active=True,
            created_by=created_by,
            updated_by=created_by,
        )
        self._flush_role(role, workplace_id=workplace_id, new=True)

        logger.info(
            "rbac.role.create.success",
            extra=log_context(
                workplace_id=workplace_id,
                role_id=role.id,
                actor=created_by,
                name=normalized,
                is_system=is_system,
            ),
        )
        return role

    def update(
        self,
        *,
        role_id: str,
        updated_by: str,
        name: str | None = None,
        description: str | None = None,
    ) -> Role:
        role = self.require(role_id)
        if role.is_system:
            raise SystemRoleImmutable("System roles cannot be modified")

        if name is not None:
            normalized = normalize_role_name(name)
            if normalized != role.name:
                self._ensure_name_available(
                    workplace_id=role.workplace_id,
                    name=normalized,
                    exclude_role_id=role.id,
                )
                role.name = normalized
        if description is not None:
            role.description = _normalize_description(description)
        role.updated_by = updated_by
        self._flush_role(role, workplace_id=role.workplace_id)

        logger.info(
            "rbac.role.update.success",
            extra=log_context(workplace_id=role.workplace_id, role_id=role.id, actor=updated_by),
        )
        return role

    def soft_delete(self, *, role_id: str, deleted_by: str) -> Role:
        role = self.require(role_id)
        if role.is_system:
            raise SystemRoleImmutable("System roles cannot be deleted")

        in_use = self.count_active_members(role.id)
        if in_use:
            raise RoleInUse(in_use)

        role.active = False
        role.updated_by = deleted_by
        self._session.flush([role])

        logger.info(
            "rbac.role.delete.success",
            extra=log_context(workplace_id=role.workplace_id, role_id=role.id, actor=deleted_by),
        )
        return role
