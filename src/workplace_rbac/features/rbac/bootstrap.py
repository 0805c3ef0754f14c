"""Provision the default owner/admin/member roles of a workplace.

Idempotency is decided from persisted state only: if the workplace already
has an active system role nothing is created. Concurrent callers are
serialized by the partial unique index on active role names; the loser rolls
back its savepoint and returns the winner's roles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from workplace_rbac.common.logging import log_context
from workplace_rbac.db.session import session_scope
from workplace_rbac.features.workplaces.models import Workplace

from .catalog import sync_catalog
from .errors import DuplicateName, NotFound
from .grants import GrantLedger
from .models import Role
from .registry import ADMIN_ROLE, MEMBER_ROLE, OWNER_ROLE, SYSTEM_ROLES
from .roles import RoleStore

logger = logging.getLogger(__name__)

__all__ = [
    "BootstrapResult",
    "RoleBootstrapper",
    "SweepReport",
    "bootstrap_all_active_workplaces",
    "initialize_on_startup",
]


@dataclass(frozen=True)
class BootstrapResult:
    """System roles of a workplace and whether this call created them."""

    owner: Role | None
    admin: Role | None
    member: Role | None
    created: bool

    @property
    def roles(self) -> tuple[Role, ...]:
        return tuple(role for role in (self.owner, self.admin, self.member) if role is not None)


@dataclass
class SweepReport:
    bootstrapped: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.bootstrapped) + len(self.skipped) + len(self.failures)


class RoleBootstrapper:
    def __init__(self, *, session: Session) -> None:
        self._session = session
        self._roles = RoleStore(session=session)
        self._ledger = GrantLedger(session=session)

    def existing(self, workplace_id: str) -> BootstrapResult | None:
        roles = {role.name: role for role in self._roles.system_roles(workplace_id)}
        if not roles:
            return None
        return BootstrapResult(
            owner=roles.get(OWNER_ROLE),
            admin=roles.get(ADMIN_ROLE),
            member=roles.get(MEMBER_ROLE),
            created=False,
        )

    def _create_default_roles(self, workplace_id: str, *, actor: str) -> BootstrapResult:
        created: dict[str, Role] = {}
        for definition in SYSTEM_ROLES:
            created[definition.name] = self._roles.create(
                workplace_id=workplace_id,
                name=definition.name,
                description=definition.description,
                created_by=actor,
                is_system=True,
            )
        for definition in SYSTEM_ROLES:
            self._ledger.replace(
                role_id=created[definition.name].id,
                permission_names=definition.permissions,
                granted_by=actor,
            )
        return BootstrapResult(
            owner=created[OWNER_ROLE],
            admin=created[ADMIN_ROLE],
            member=created[MEMBER_ROLE],
            created=True,
        )

    def bootstrap_workplace(self, workplace_id: str, *, actor: str) -> BootstrapResult:
        if self._session.get(Workplace, workplace_id) is None:
            raise NotFound("Workplace not found")

        current = self.existing(workplace_id)
        if current is not None:
            logger.debug(
                "rbac.bootstrap.skipped",
                extra=log_context(workplace_id=workplace_id, actor=actor),
            )
            return current

        try:
            with self._session.begin_nested():
                result = self._create_default_roles(workplace_id, actor=actor)
        except (DuplicateName, IntegrityError) as exc:
            current = self.existing(workplace_id)
            if current is None:
                raise
            logger.info(
                "rbac.bootstrap.race_lost",
                extra=log_context(
                    workplace_id=workplace_id,
                    actor=actor,
                    error=type(exc).__name__,
                ),
            )
            return current

        logger.info(
            "rbac.bootstrap.created",
            extra=log_context(workplace_id=workplace_id, actor=actor, roles=len(result.roles)),
        )
        return result


# ---------------------------------------------------------------------------
# Sweep / startup
# ---------------------------------------------------------------------------


def bootstrap_all_active_workplaces(
    session_factory: sessionmaker[Session],
    *,
    actor: str = "system",
) -> SweepReport:
    """Bootstrap every active workplace, one transaction per workplace.

    A failing workplace is logged and recorded in the report; the sweep
    carries on with the rest.
    """

    report = SweepReport()
    with session_scope(session_factory) as session:
        workplace_ids = list(
            session.scalars(
                select(Workplace.id).where(Workplace.active.is_(True)).order_by(Workplace.id)
            )
        )

    for workplace_id in workplace_ids:
        try:
            with session_scope(session_factory) as session:
                result = RoleBootstrapper(session=session).bootstrap_workplace(
                    workplace_id,
                    actor=actor,
                )
        except Exception as exc:
            logger.exception(
                "rbac.bootstrap.sweep.failed",
                extra=log_context(workplace_id=workplace_id, actor=actor),
            )
            report.failures[workplace_id] = str(exc) or type(exc).__name__
            continue

        if result.created:
            report.bootstrapped.append(workplace_id)
        else:
            report.skipped.append(workplace_id)

    logger.info(
        "rbac.bootstrap.sweep.complete",
        extra={
            "bootstrapped": len(report.bootstrapped),
            "skipped": len(report.skipped),
            "failed": len(report.failures),
        },
    )
    return report


def initialize_on_startup(
    session_factory: sessionmaker[Session],
    *,
    actor: str = "system",
) -> SweepReport | None:
    """Sync the catalog then sweep workplaces; never raises."""

    try:
        with session_scope(session_factory) as session:
            sync_catalog(session)
    except Exception:
        logger.exception("rbac.startup.catalog_failed")
        return None

    try:
        return bootstrap_all_active_workplaces(session_factory, actor=actor)
    except Exception:
        logger.exception("rbac.startup.sweep_failed")
        return None
