"""SQLAlchemy models for the permission catalog, roles and the grant ledger."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workplace_rbac.db import Base, TimestampMixin, ULIDPrimaryKeyMixin, UTCDateTime, utc_now

ACTOR_ID_LENGTH = 64


class Permission(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """Database record for a catalog permission."""

    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("module", "action", name="uq_permissions_module_action"),
        UniqueConstraint("name", name="uq_permissions_name"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    module: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    grants: Mapped[list[RoleGrant]] = relationship("RoleGrant", back_populates="permission")


class Role(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """System or custom role scoped to a workplace."""

    __tablename__ = "roles"
    __table_args__ = (
        Index(
            "uq_roles_workplace_name_active",
            "workplace_id",
            "name",
            unique=True,
            sqlite_where=text("active"),
            postgresql_where=text("active"),
        ),
        Index("ix_roles_workplace_active", "workplace_id", "active"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Hierarchy is recorded but never consulted when resolving permissions.
    parent_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("roles.id", ondelete="SET NULL"), nullable=True
    )
    workplace_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("workplaces.id", ondelete="CASCADE"), nullable=True
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH), nullable=True)

    parent: Mapped[Role | None] = relationship("Role", remote_side="Role.id")
    grants: Mapped[list[RoleGrant]] = relationship(
        "RoleGrant",
        back_populates="role",
        order_by="RoleGrant.granted_at",
    )


class RoleGrant(ULIDPrimaryKeyMixin, TimestampMixin, Base):
    """Ledger entry linking a role to a permission.

    Rows are never deleted: a revoked grant is deactivated and a re-grant is a
    new row, so the table doubles as an audit history.
    """

    __tablename__ = "role_grants"
    __table_args__ = (
        Index(
            "uq_role_grants_role_permission_active",
            "role_id",
            "permission_id",
            unique=True,
            sqlite_where=text("active"),
            postgresql_where=text("active"),
        ),
        Index("ix_role_grants_role_active", "role_id", "active"),
    )

    role_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    permission_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
    )
    granted_by: Mapped[str] = mapped_column(String(ACTOR_ID_LENGTH), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    role: Mapped[Role] = relationship("Role", back_populates="grants")
    permission: Mapped[Permission] = relationship("Permission", back_populates="grants")


__all__ = ["ACTOR_ID_LENGTH", "Permission", "Role", "RoleGrant"]
