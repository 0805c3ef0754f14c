"""Authorization gate: membership-aware permission checks."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from sqlalchemy.orm import Session

from workplace_rbac.common.logging import log_context

from .catalog import validate_permission_names
from .errors import Forbidden
from .membership import MembershipService
from .resolution import PermissionResolver, has

logger = logging.getLogger(__name__)

__all__ = ["AuthorizationDecision", "AuthorizationGate", "evaluate"]

MatchMode = Literal["all", "any"]


@dataclass(frozen=True)
class AuthorizationDecision:
    """Result of an authorization evaluation."""

    granted: frozenset[str]
    required: tuple[str, ...]
    missing: tuple[str, ...]
    mode: MatchMode = "all"

    @property
    def is_authorized(self) -> bool:
        if not self.required:
            return True
        if self.mode == "any":
            return len(self.missing) < len(self.required)
        return not self.missing


def evaluate(
    *,
    granted: Iterable[str],
    required: Iterable[str],
    mode: MatchMode = "all",
) -> AuthorizationDecision:
    """Compare a resolved permission set against the required names."""

    granted_set = frozenset(granted)
    # "*" stays a requirement: only wildcard holders satisfy it.
    required_names = tuple(validate_permission_names(required))
    missing = tuple(name for name in required_names if not has(granted_set, name))
    return AuthorizationDecision(
        granted=granted_set,
        required=required_names,
        missing=missing,
        mode=mode,
    )


class AuthorizationGate:
    """Answers "may this actor do X in this workplace" from persisted state."""

    def __init__(self, *, session: Session, enforce_expiry: bool = True) -> None:
        self._session = session
        self._memberships = MembershipService(session=session)
        self._resolver = PermissionResolver(session=session, enforce_expiry=enforce_expiry)

    def permissions_for(self, *, actor: str, workplace_id: str) -> frozenset[str]:
        """Resolved permissions of the actor's active membership (empty without one)."""

        role = self._memberships.get_user_role(user_id=actor, workplace_id=workplace_id)
        if role is None:
            return frozenset()
        return self._resolver.resolve(role.id)

    def require(self, *, actor: str, workplace_id: str, permission: str) -> bool:
        """Return whether ``actor`` holds ``permission`` in ``workplace_id``.

        A missing or inactive membership is simply ``False``.
        """

        granted = self.permissions_for(actor=actor, workplace_id=workplace_id)
        return has(granted, permission)

    def authorize(
        self,
        *,
        actor: str,
        workplace_id: str,
        permissions: Iterable[str],
        mode: MatchMode = "all",
    ) -> AuthorizationDecision:
        granted = self.permissions_for(actor=actor, workplace_id=workplace_id)
        return evaluate(granted=granted, required=permissions, mode=mode)

    def ensure(self, *, actor: str, workplace_id: str, permission: str) -> None:
        """Raise :class:`Forbidden` unless the actor holds ``permission``."""

        if self.require(actor=actor, workplace_id=workplace_id, permission=permission):
            return
        logger.info(
            "rbac.gate.denied",
            extra=log_context(workplace_id=workplace_id, actor=actor, permission=permission),
        )
        raise Forbidden(f"Missing permission '{permission}'")
