"""Effective-permission resolution for roles.

A role's effective set is the distinct names of its active grants whose
permission is also active. When that set covers the entire active catalog it
collapses to the wildcard token. Nothing here is cached: every call reads the
ledger again, so a fresh grant replace is visible immediately.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from workplace_rbac.db import utc_now

from .catalog import PermissionCatalog
from .models import Permission, RoleGrant
from .registry import WILDCARD

__all__ = ["PermissionResolver", "has", "resolve"]


def has(permission_names: Collection[str], permission: str) -> bool:
    """Return ``True`` when ``permission_names`` grants ``permission``.

    Only the exact name or the wildcard token match; there is no prefix or
    glob matching.
    """

    return WILDCARD in permission_names or permission in permission_names


class PermissionResolver:
    """Compute effective permission sets from the grant ledger."""

    def __init__(
        self,
        *,
        session: Session,
        enforce_expiry: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session = session
        self._enforce_expiry = enforce_expiry
        self._clock = clock

    def _grant_conditions(self) -> list:
        conditions = [RoleGrant.active.is_(True), Permission.active.is_(True)]
        if self._enforce_expiry:
            conditions.append(
                or_(RoleGrant.expires_at.is_(None), RoleGrant.expires_at > self._clock())
            )
        return conditions

    def _collapse(self, names: frozenset[str], total: int) -> frozenset[str]:
        if total > 0 and len(names) == total:
            return frozenset({WILDCARD})
        return names

    def explicit_permissions(self, role_id: str) -> frozenset[str]:
        """Return the granted names without wildcard collapsing."""

        stmt = (
            select(Permission.name)
            .distinct()
            .select_from(RoleGrant)
            .join(Permission, Permission.id == RoleGrant.permission_id)
            .where(RoleGrant.role_id == role_id, *self._grant_conditions())
        )
        return frozenset(self._session.scalars(stmt))

    def resolve(self, role_id: str) -> frozenset[str]:
        names = self.explicit_permissions(role_id)
        if not names:
            return names
        total = PermissionCatalog(session=self._session).active_count()
        return self._collapse(names, total)

    def resolve_many(self, role_ids: Iterable[str]) -> dict[str, frozenset[str]]:
        """Resolve several roles with a single ledger query."""

        wanted = tuple(dict.fromkeys(role_ids))
        if not wanted:
            return {}

        stmt = (
            select(RoleGrant.role_id, Permission.name)
            .distinct()
            .select_from(RoleGrant)
            .join(Permission, Permission.id == RoleGrant.permission_id)
            .where(RoleGrant.role_id.in_(wanted), *self._grant_conditions())
        )
        collected: dict[str, set[str]] = {role_id: set() for role_id in wanted}
        for role_id, name in self._session.execute(stmt).all():
            collected[role_id].add(name)

        total = PermissionCatalog(session=self._session).active_count()
        return {
            role_id: self._collapse(frozenset(names), total)
            for role_id, names in collected.items()
        }


def resolve(session: Session, role_id: str) -> frozenset[str]:
    """Resolve ``role_id`` using default resolver settings."""

    return PermissionResolver(session=session).resolve(role_id)
