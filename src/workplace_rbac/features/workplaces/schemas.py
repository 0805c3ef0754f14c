from __future__ import annotations

from datetime import datetime

from pydantic import Field

from workplace_rbac.common.schema import BaseSchema
from workplace_rbac.features.rbac.schemas import RoleOut


class WorkplaceCreate(BaseSchema):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    timezone: str = Field(default="UTC", max_length=64)


class WorkplaceOut(BaseSchema):
    """A workplace together with the system roles provisioned for it."""

    id: str
    name: str
    description: str | None
    timezone: str
    active: bool
    created_by: str | None
    created_at: datetime
    roles: list[RoleOut] = Field(default_factory=list)
