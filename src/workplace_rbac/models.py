"""Central exports for SQLAlchemy models.

Importing this module registers every table on ``Base.metadata``.
"""

from workplace_rbac.features.rbac.models import Permission, Role, RoleGrant
from workplace_rbac.features.workplaces.models import (
    MembershipStatus,
    Workplace,
    WorkplaceMembership,
)

__all__ = [
    "MembershipStatus",
    "Permission",
    "Role",
    "RoleGrant",
    "Workplace",
    "WorkplaceMembership",
]
