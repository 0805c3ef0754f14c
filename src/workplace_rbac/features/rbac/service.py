"""RBAC operations behind the API and CLI: guarded role management and queries."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy.orm import Session

from workplace_rbac.features.workplaces.models import WorkplaceMembership

from .catalog import CatalogSyncResult, PermissionCatalog, validate_permission_names
from .errors import NotFound, SystemRoleImmutable
from .gate import AuthorizationGate
from .grants import GrantLedger
from .membership import MembershipService
from .models import Permission, Role
from .registry import PermissionCategory
from .resolution import PermissionResolver
from .roles import RoleStore

__all__ = ["RbacService", "RoleView"]


@dataclass(frozen=True)
class RoleView:
    """A role together with its resolved permission set."""

    role: Role
    permissions: frozenset[str]

    @property
    def sorted_permissions(self) -> list[str]:
        return sorted(self.permissions)


class RbacService:
    """Every role mutation passes the authorization gate before touching storage."""

    def __init__(self, *, session: Session, enforce_expiry: bool = True) -> None:
        self._session = session
        self._catalog = PermissionCatalog(session=session)
        self._roles = RoleStore(session=session)
        self._ledger = GrantLedger(session=session)
        self._memberships = MembershipService(session=session)
        self._resolver = PermissionResolver(session=session, enforce_expiry=enforce_expiry)
        self.gate = AuthorizationGate(session=session, enforce_expiry=enforce_expiry)

    # ------------- catalog -----------------------

    def sync_catalog(self) -> CatalogSyncResult:
        return self._catalog.sync()

    def list_permissions(self, *, include_inactive: bool = False) -> list[Permission]:
        return self._catalog.list_permissions(include_inactive=include_inactive)

    def permissions_by_category(self) -> list[tuple[PermissionCategory, list[Permission]]]:
        """Active permissions grouped under every category, in registry order."""

        grouped: dict[str, list[Permission]] = {category: [] for category in PermissionCategory}
        for permission in self.list_permissions():
            grouped.setdefault(permission.category, []).append(permission)
        return [(category, grouped[category]) for category in PermissionCategory]

    # ------------- queries -----------------------

    def resolve(self, role_id: str) -> frozenset[str]:
        return self._resolver.resolve(role_id)

    def has_permission(self, *, user_id: str, workplace_id: str, permission: str) -> bool:
        return self.gate.require(actor=user_id, workplace_id=workplace_id, permission=permission)

    def get_user_role(self, *, user_id: str, workplace_id: str) -> RoleView | None:
        role = self._memberships.get_user_role(user_id=user_id, workplace_id=workplace_id)
        if role is None:
            return None
        return RoleView(role=role, permissions=self._resolver.resolve(role.id))

    def role_views(self, roles: Iterable[Role]) -> list[RoleView]:
        roles = list(roles)
        resolved = self._resolver.resolve_many(role.id for role in roles)
        return [
            RoleView(role=role, permissions=resolved.get(role.id, frozenset()))
            for role in roles
        ]

    def workplace_role_views(self, workplace_id: str) -> list[RoleView]:
        """Active roles of a workplace without an authorization check."""

        return self.role_views(self._roles.list_for_workplace(workplace_id))

    def list_roles(self, *, actor: str, workplace_id: str) -> list[RoleView]:
        self.gate.ensure(actor=actor, workplace_id=workplace_id, permission="role.view")
        return self.workplace_role_views(workplace_id)

    def _role_in_workplace(self, *, role_id: str, workplace_id: str) -> Role:
        role = self._roles.get_in_workplace(role_id=role_id, workplace_id=workplace_id)
        if role is None:
            raise NotFound("Role not found")
        return role

    # ------------- guarded mutations -------------

    def create_role(
        self,
        *,
        actor: str,
        workplace_id: str,
        name: str,
        description: str | None = None,
        permissions: Sequence[str] | None = None,
    ) -> RoleView:
        self.gate.ensure(actor=actor, workplace_id=workplace_id, permission="role.create")
        if permissions is not None:
            permissions = validate_permission_names(permissions)

        with self._session.begin_nested():
            role = self._roles.create(
                workplace_id=workplace_id,
                name=name,
                description=description,
                created_by=actor,
            )
            if permissions is not None:
                self._ledger.replace(
                    role_id=role.id,
                    permission_names=permissions,
                    granted_by=actor,
                )

        return RoleView(role=role, permissions=self._resolver.resolve(role.id))

    def update_role(
        self,
        *,
        actor: str,
        workplace_id: str,
        role_id: str,
        name: str | None = None,
        description: str | None = None,
        permissions: Sequence[str] | None = None,
    ) -> RoleView:
        self.gate.ensure(actor=actor, workplace_id=workplace_id, permission="role.update")
        role = self._role_in_workplace(role_id=role_id, workplace_id=workplace_id)
        if role.is_system:
            raise SystemRoleImmutable("System roles cannot be modified")
        if permissions is not None:
            permissions = validate_permission_names(permissions)

        with self._session.begin_nested():
            self._roles.update(
                role_id=role.id,
                updated_by=actor,
                name=name,
                description=description,
            )
            if permissions is not None:
                self._ledger.replace(
                    role_id=role.id,
                    permission_names=permissions,
                    granted_by=actor,
                )

        return RoleView(role=role, permissions=self._resolver.resolve(role.id))

    def delete_role(self, *, actor: str, workplace_id: str, role_id: str) -> None:
        self.gate.ensure(actor=actor, workplace_id=workplace_id, permission="role.delete")
        role = self._role_in_workplace(role_id=role_id, workplace_id=workplace_id)
        self._roles.soft_delete(role_id=role.id, deleted_by=actor)

    def assign_role(
        self,
        *,
        actor: str,
        workplace_id: str,
        user_id: str,
        role_id: str,
    ) -> WorkplaceMembership:
        self.gate.ensure(actor=actor, workplace_id=workplace_id, permission="role.assign")
        return self._memberships.assign(
            user_id=user_id,
            workplace_id=workplace_id,
            role_id=role_id,
            actor=actor,
        )
