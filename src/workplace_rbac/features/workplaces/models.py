"""Workplace and membership tables consulted by the access-control engine."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workplace_rbac.db import Base, TimestampMixin, ULIDPrimaryKeyMixin, UTCDateTime, utc_now
from workplace_rbac.features.rbac.models import ACTOR_ID_LENGTH, Role


class MembershipStatus(StrEnum):
    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"


class Workplace(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """Tenant boundary owning roles and memberships."""

    __tablename__ = "workplaces"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str] = mapped_column(String(ACTOR_ID_LENGTH), nullable=False)

    memberships: Mapped[list[WorkplaceMembership]] = relationship(
        "WorkplaceMembership",
        back_populates="workplace",
    )


class WorkplaceMembership(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """A user's membership in a workplace, pointing at exactly one role."""

    __tablename__ = "workplace_memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "workplace_id", name="uq_workplace_memberships_user_workplace"),
        Index("ix_workplace_memberships_role_status", "role_id", "status"),
    )

    user_id: Mapped[str] = mapped_column(String(ACTOR_ID_LENGTH), nullable=False)
    workplace_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("workplaces.id", ondelete="CASCADE"), nullable=False
    )
    role_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("roles.id", ondelete="RESTRICT"), nullable=False
    )
    status: Mapped[MembershipStatus] = mapped_column(
        SAEnum(
            MembershipStatus,
            name="membership_status",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=MembershipStatus.ACTIVE,
    )
    joined_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, default=utc_now
    )
    last_active_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    workplace: Mapped[Workplace] = relationship("Workplace", back_populates="memberships")
    role: Mapped[Role] = relationship("Role")


__all__ = ["MembershipStatus", "Workplace", "WorkplaceMembership"]
