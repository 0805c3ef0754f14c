"""Grant ledger: role to permission grants with soft revocation."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from workplace_rbac.common.logging import log_context
from workplace_rbac.db import utc_now

from .catalog import PermissionCatalog, validate_permission_names
from .errors import NotFound, UnknownPermission
from .models import Permission, Role, RoleGrant
from .registry import WILDCARD

logger = logging.getLogger(__name__)

__all__ = ["GrantLedger"]


class GrantLedger:
    """Writes and inspects ``role_grants`` rows for a role."""

    def __init__(self, *, session: Session) -> None:
        self._session = session

    def _require_role(self, role_id: str) -> Role:
        role = self._session.get(Role, role_id)
        if role is None:
            raise NotFound("Role not found")
        return role

    def _resolve_permission_ids(self, names: tuple[str, ...]) -> dict[str, str]:
        catalog = PermissionCatalog(session=self._session)
        if WILDCARD in names:
            return catalog.active_ids_by_name(None)

        id_map = catalog.active_ids_by_name(names)
        missing = tuple(name for name in names if name not in id_map)
        if missing:
            raise UnknownPermission(missing)
        return id_map

    # ------------- writes ------------------------

    def replace(
        self,
        *,
        role_id: str,
        permission_names: Iterable[str],
        granted_by: str,
        expires_at: datetime | None = None,
    ) -> list[RoleGrant]:
        """Swap the role's active grants for ``permission_names``.

        Every active grant is deactivated and a fresh active row is inserted
        per requested permission, inside one savepoint. ``"*"`` expands to the
        whole active catalog. Validation happens before any write.
        """

        names = validate_permission_names(permission_names)
        self._require_role(role_id)
        id_map = self._resolve_permission_ids(names)
        now = utc_now()

        with self._session.begin_nested():
            revoked = self._session.execute(
                update(RoleGrant)
                .where(RoleGrant.role_id == role_id, RoleGrant.active.is_(True))
                .values(active=False, updated_at=now)
            ).rowcount
            grants = [
                RoleGrant(
                    role_id=role_id,
                    permission_id=permission_id,
                    granted_by=granted_by,
                    granted_at=now,
                    expires_at=expires_at,
                    active=True,
                )
                for _, permission_id in sorted(id_map.items())
            ]
            self._session.add_all(grants)
            self._session.flush(grants)

        logger.info(
            "rbac.grants.replace.success",
            extra=log_context(
                role_id=role_id,
                actor=granted_by,
                revoked=revoked or 0,
                granted=len(grants),
            ),
        )
        return grants

    def revoke(self, *, role_id: str, permission_name: str, revoked_by: str) -> RoleGrant:
        """Deactivate the single active grant of ``permission_name``."""

        stmt = (
            select(RoleGrant)
            .join(Permission, Permission.id == RoleGrant.permission_id)
            .where(
                RoleGrant.role_id == role_id,
                RoleGrant.active.is_(True),
                Permission.name == permission_name,
            )
            .limit(1)
        )
        grant = self._session.scalars(stmt).first()
        if grant is None:
            raise NotFound(f"No active grant of '{permission_name}' for this role")

        grant.active = False
        self._session.flush([grant])
        logger.info(
            "rbac.grants.revoke.success",
            extra=log_context(role_id=role_id, actor=revoked_by, permission=permission_name),
        )
        return grant

    # ------------- reads -------------------------

    def active_grants(self, role_id: str) -> list[RoleGrant]:
        stmt = (
            select(RoleGrant)
            .options(selectinload(RoleGrant.permission))
            .where(RoleGrant.role_id == role_id, RoleGrant.active.is_(True))
            .order_by(RoleGrant.granted_at, RoleGrant.id)
        )
        return list(self._session.scalars(stmt))

    def history(self, role_id: str) -> list[RoleGrant]:
        """Every grant ever issued for the role, oldest first."""

        stmt = (
            select(RoleGrant)
            .options(selectinload(RoleGrant.permission))
            .where(RoleGrant.role_id == role_id)
            .order_by(RoleGrant.granted_at, RoleGrant.id)
        )
        return list(self._session.scalars(stmt))
