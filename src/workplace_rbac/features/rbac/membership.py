"""Binding workplace memberships to roles."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from workplace_rbac.common.logging import log_context
from workplace_rbac.features.workplaces.models import MembershipStatus, WorkplaceMembership

from .errors import Forbidden, NotFound
from .models import Role
from .registry import OWNER_ROLE
from .roles import RoleStore

logger = logging.getLogger(__name__)

__all__ = ["MembershipService", "is_owner_role"]


def is_owner_role(role: Role | None) -> bool:
    return role is not None and role.is_system and role.name == OWNER_ROLE


class MembershipService:
    """Membership lookups plus the role assignment write path."""

    def __init__(self, *, session: Session) -> None:
        self._session = session

    def get_membership(self, *, user_id: str, workplace_id: str) -> WorkplaceMembership | None:
        stmt = select(WorkplaceMembership).where(
            WorkplaceMembership.user_id == user_id,
            WorkplaceMembership.workplace_id == workplace_id,
        )
        return self._session.scalars(stmt).first()

    def get_active_membership(
        self, *, user_id: str, workplace_id: str
    ) -> WorkplaceMembership | None:
        membership = self.get_membership(user_id=user_id, workplace_id=workplace_id)
        if membership is None or membership.status != MembershipStatus.ACTIVE:
            return None
        return membership

    def get_user_role(self, *, user_id: str, workplace_id: str) -> Role | None:
        """Return the role behind the user's active membership, if any."""

        membership = self.get_active_membership(user_id=user_id, workplace_id=workplace_id)
        if membership is None:
            return None
        role = self._session.get(Role, membership.role_id)
        if role is None or not role.active:
            return None
        return role

    def ensure_owner_reassignment_allowed(
        self,
        *,
        membership: WorkplaceMembership,
        actor: str,
    ) -> None:
        """Only a current owner may move a membership away from the owner role."""

        current_role = self._session.get(Role, membership.role_id)
        if not is_owner_role(current_role):
            return
        actor_role = self.get_user_role(user_id=actor, workplace_id=membership.workplace_id)
        if not is_owner_role(actor_role):
            logger.warning(
                "rbac.assign.owner_guard.denied",
                extra=log_context(
                    workplace_id=membership.workplace_id,
                    user_id=membership.user_id,
                    actor=actor,
                ),
            )
            raise Forbidden("Only an owner can change the role of an owner")

    def assign(
        self,
        *,
        user_id: str,
        workplace_id: str,
        role_id: str,
        actor: str,
    ) -> WorkplaceMembership:
        """Point an existing membership at ``role_id``.

        Roles from other workplaces are reported as missing so tenants cannot
        enumerate each other's role ids.
        """

        role = RoleStore(session=self._session).get_in_workplace(
            role_id=role_id,
            workplace_id=workplace_id,
        )
        if role is None:
            raise NotFound("Role not found")

        membership = self.get_membership(user_id=user_id, workplace_id=workplace_id)
        if membership is None:
            raise NotFound("User is not a member of this workplace")

        self.ensure_owner_reassignment_allowed(membership=membership, actor=actor)

        previous_role_id = membership.role_id
        membership.role_id = role.id
        self._session.flush([membership])

        logger.info(
            "rbac.assign.success",
            extra=log_context(
                workplace_id=workplace_id,
                role_id=role.id,
                user_id=user_id,
                actor=actor,
                previous_role_id=previous_role_id,
            ),
        )
        return membership
