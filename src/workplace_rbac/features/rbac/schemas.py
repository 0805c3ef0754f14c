from __future__ import annotations

from datetime import datetime

from pydantic import Field

from workplace_rbac.common.schema import BaseSchema
from workplace_rbac.features.workplaces.models import MembershipStatus


class PermissionOut(BaseSchema):
    """API representation of a catalog permission."""

    id: str
    name: str
    description: str | None
    category: str
    module: str
    action: str
    is_system: bool
    active: bool


class PermissionGroupOut(BaseSchema):
    """Catalog permissions of one category; empty categories are listed too."""

    category: str
    permissions: list[PermissionOut]


class RoleCreate(BaseSchema):
    """Payload for creating a custom role."""

    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    permissions: list[str] | None = None


class RoleUpdate(BaseSchema):
    """Payload for updating a custom role; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    permissions: list[str] | None = None


class RoleOut(BaseSchema):
    """API representation of a role and its effective permissions."""

    id: str
    name: str
    description: str | None
    workplace_id: str | None
    parent_id: str | None
    is_system: bool
    permissions: list[str]
    created_at: datetime
    updated_at: datetime


class UserRoleOut(BaseSchema):
    workplace_id: str
    user_id: str
    role: RoleOut | None


class AssignRoleRequest(BaseSchema):
    user_id: str = Field(min_length=1, max_length=64)
    role_id: str = Field(min_length=1, max_length=26)


class MembershipOut(BaseSchema):
    id: str
    user_id: str
    workplace_id: str
    role_id: str
    status: MembershipStatus
    joined_at: datetime | None


class PermissionCheckOut(BaseSchema):
    workplace_id: str
    user_id: str
    permission: str
    granted: bool
