"""Workplace provisioning: create a tenant, its default roles and its owner."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workplace_rbac.common.logging import log_context
from workplace_rbac.db import utc_now
from workplace_rbac.features.rbac.bootstrap import BootstrapResult, RoleBootstrapper
from workplace_rbac.features.rbac.errors import MembershipExists, NotFound, RbacError
from workplace_rbac.features.rbac.registry import MEMBER_ROLE, OWNER_ROLE
from workplace_rbac.features.rbac.roles import RoleStore

from .models import MembershipStatus, Workplace, WorkplaceMembership

logger = logging.getLogger(__name__)

__all__ = ["WorkplacesService"]


class WorkplacesService:
    def __init__(self, *, session: Session) -> None:
        self._session = session

    def get_workplace(self, workplace_id: str) -> Workplace | None:
        return self._session.get(Workplace, workplace_id)

    def list_workplaces(self, *, active_only: bool = True) -> list[Workplace]:
        stmt = select(Workplace).order_by(Workplace.created_at, Workplace.id)
        if active_only:
            stmt = stmt.where(Workplace.active.is_(True))
        return list(self._session.scalars(stmt))

    def create_workplace(
        self,
        *,
        name: str,
        created_by: str,
        description: str | None = None,
        timezone: str = "UTC",
    ) -> tuple[Workplace, BootstrapResult]:
        """Create a workplace, provision its default roles and seat the creator as owner."""

        candidate = name.strip()
        if not candidate:
            raise RbacError("Workplace name is required")

        workplace = Workplace(
            name=candidate,
            description=description,
            timezone=timezone,
            active=True,
            created_by=created_by,
        )
        self._session.add(workplace)
        self._session.flush([workplace])

        roles = RoleBootstrapper(session=self._session).bootstrap_workplace(
            workplace.id,
            actor=created_by,
        )
        self.add_member(
            workplace_id=workplace.id,
            user_id=created_by,
            role_name=OWNER_ROLE,
        )

        logger.info(
            "workplace.create.success",
            extra=log_context(workplace_id=workplace.id, user_id=created_by),
        )
        return workplace, roles

    def add_member(
        self,
        *,
        workplace_id: str,
        user_id: str,
        role_name: str = MEMBER_ROLE,
        status: MembershipStatus = MembershipStatus.ACTIVE,
    ) -> WorkplaceMembership:
        """Create a membership bound to the named active role of the workplace."""

        if self.get_workplace(workplace_id) is None:
            raise NotFound("Workplace not found")
        role = RoleStore(session=self._session).find_by_name(
            workplace_id=workplace_id,
            name=role_name,
        )
        if role is None:
            raise NotFound("Role not found")

        membership = WorkplaceMembership(
            user_id=user_id,
            workplace_id=workplace_id,
            role_id=role.id,
            status=status,
            joined_at=utc_now() if status == MembershipStatus.ACTIVE else None,
        )
        try:
            with self._session.begin_nested():
                self._session.add(membership)
                self._session.flush([membership])
        except IntegrityError as exc:
            raise MembershipExists("User is already a member of this workplace") from exc

        logger.info(
            "workplace.member.add.success",
            extra=log_context(
                workplace_id=workplace_id,
                user_id=user_id,
                role_id=role.id,
                status=status.value,
            ),
        )
        return membership
