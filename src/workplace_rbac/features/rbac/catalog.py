"""Persistence side of the permission catalog."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import UnknownPermission
from .models import Permission
from .registry import PERMISSION_REGISTRY, PERMISSIONS, WILDCARD, PermissionDefinition

logger = logging.getLogger(__name__)

__all__ = [
    "CatalogSyncResult",
    "PermissionCatalog",
    "sync_catalog",
    "validate_permission_names",
]


@dataclass(frozen=True)
class CatalogSyncResult:
    """Outcome of a catalog upsert."""

    created: int
    updated: int
    total: int


def validate_permission_names(names: Iterable[str]) -> tuple[str, ...]:
    """Return de-duplicated permission names, rejecting anything off-catalog.

    The wildcard token is accepted as-is.
    """

    normalized = tuple(dict.fromkeys(str(name).strip() for name in names))
    unknown = tuple(
        name for name in normalized if name != WILDCARD and name not in PERMISSION_REGISTRY
    )
    if unknown:
        raise UnknownPermission(unknown)
    return normalized


class PermissionCatalog:
    """Reads and upserts the ``permissions`` table."""

    def __init__(self, *, session: Session) -> None:
        self._session = session

    # ------------- sync --------------------------

    def sync(self) -> CatalogSyncResult:
        """Upsert every catalog definition by ``(module, action)``.

        Existing rows keep their id and name; only descriptive fields are
        refreshed and the row is (re)activated. Nothing is ever deleted.
        """

        logger.debug("rbac.catalog.sync.start")

        existing = {
            (permission.module, permission.action): permission
            for permission in self._session.scalars(select(Permission))
        }

        created = 0
        updated = 0
        for definition in PERMISSIONS:
            current = existing.get((definition.module, definition.action.value))
            if current is None:
                if self._insert(definition):
                    created += 1
                continue

            if current.name != definition.name:
                logger.warning(
                    "rbac.catalog.sync.name_mismatch",
                    extra={"stored": current.name, "declared": definition.name},
                )
            if self._refresh(current, definition):
                updated += 1

        self._session.flush()

        result = CatalogSyncResult(created=created, updated=updated, total=len(PERMISSIONS))
        logger.info(
            "rbac.catalog.sync.success",
            extra={"created": created, "updated": updated, "total": result.total},
        )
        return result

    def _insert(self, definition: PermissionDefinition) -> bool:
        permission = Permission(
            name=definition.name,
            description=definition.description,
            category=definition.category.value,
            module=definition.module,
            action=definition.action.value,
            is_system=True,
            active=True,
        )
        try:
            with self._session.begin_nested():
                self._session.add(permission)
                self._session.flush([permission])
        except IntegrityError:
            # Another process inserted the same (module, action) first.
            logger.debug(
                "rbac.catalog.sync.conflict",
                extra={"permission": definition.name},
            )
            return False
        return True

    @staticmethod
    def _refresh(current: Permission, definition: PermissionDefinition) -> bool:
        changed = False
        desired = {
            "description": definition.description,
            "category": definition.category.value,
            "is_system": True,
            "active": True,
        }
        for attribute, value in desired.items():
            if getattr(current, attribute) != value:
                setattr(current, attribute, value)
                changed = True
        return changed

    # ------------- queries -----------------------

    def list_permissions(self, *, include_inactive: bool = False) -> list[Permission]:
        stmt = select(Permission).order_by(Permission.category, Permission.name)
        if not include_inactive:
            stmt = stmt.where(Permission.active.is_(True))
        return list(self._session.scalars(stmt))

    def active_count(self) -> int:
        stmt = select(func.count()).select_from(Permission).where(Permission.active.is_(True))
        return int(self._session.execute(stmt).scalar_one() or 0)

    def active_ids_by_name(self, names: Iterable[str] | None = None) -> dict[str, str]:
        """Map active permission names to ids; ``None`` selects the whole catalog."""

        stmt = select(Permission.name, Permission.id).where(Permission.active.is_(True))
        if names is not None:
            wanted = tuple(names)
            if not wanted:
                return {}
            stmt = stmt.where(Permission.name.in_(wanted))
        return {name: permission_id for name, permission_id in self._session.execute(stmt).all()}


def sync_catalog(session: Session) -> CatalogSyncResult:
    """Upsert the static catalog into the database."""

    return PermissionCatalog(session=session).sync()
