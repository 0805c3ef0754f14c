"""Canonical permission catalog and default workplace roles."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

WILDCARD = "*"


class PermissionCategory(StrEnum):
    WORKPLACE = "workplace"
    USER = "user"
    ROLE = "role"
    GROUP = "group"
    TASK = "task"
    FILE = "file"
    INVITATION = "invitation"
    SETTINGS = "settings"


class PermissionAction(StrEnum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"  # Full access to the module
    INVITE = "invite"
    ASSIGN = "assign"


@dataclass(frozen=True)
class PermissionDefinition:
    """Describes a permission entry in the catalog."""

    name: str
    description: str
    category: PermissionCategory
    module: str
    action: PermissionAction


@dataclass(frozen=True)
class SystemRoleDefinition:
    """Seed data for the immutable roles every workplace receives."""

    name: str
    description: str
    permissions: tuple[str, ...]


def _define(
    name: str,
    description: str,
    category: PermissionCategory,
    action: PermissionAction,
) -> PermissionDefinition:
    module = name.split(".", 1)[0]
    return PermissionDefinition(
        name=name,
        description=description,
        category=category,
        module=module,
        action=action,
    )


_C = PermissionCategory
_A = PermissionAction

PERMISSIONS: tuple[PermissionDefinition, ...] = (
    # Workplace -------------------------------------------------------------
    _define("workplace.view", "View workplace information", _C.WORKPLACE, _A.READ),
    _define("workplace.update", "Update workplace settings", _C.WORKPLACE, _A.UPDATE),
    _define("workplace.delete", "Delete workplace", _C.WORKPLACE, _A.DELETE),
    _define("workplace.manage", "Full workplace management", _C.WORKPLACE, _A.MANAGE),
    # Users -----------------------------------------------------------------
    _define("user.view", "View user profiles", _C.USER, _A.READ),
    _define("user.invite", "Invite new users", _C.USER, _A.INVITE),
    _define("user.update", "Update user information", _C.USER, _A.UPDATE),
    _define("user.delete", "Remove users from workplace", _C.USER, _A.DELETE),
    _define("user.manage", "Full user management", _C.USER, _A.MANAGE),
    # Roles -----------------------------------------------------------------
    _define("role.view", "View roles and permissions", _C.ROLE, _A.READ),
    _define("role.create", "Create new roles", _C.ROLE, _A.CREATE),
    _define("role.update", "Update roles and permissions", _C.ROLE, _A.UPDATE),
    _define("role.delete", "Delete roles", _C.ROLE, _A.DELETE),
    _define("role.assign", "Assign roles to users", _C.ROLE, _A.ASSIGN),
    _define("role.manage", "Full role management", _C.ROLE, _A.MANAGE),
    # Groups ----------------------------------------------------------------
    _define("group.view", "View groups", _C.GROUP, _A.READ),
    _define("group.create", "Create new groups", _C.GROUP, _A.CREATE),
    _define("group.update", "Update group information", _C.GROUP, _A.UPDATE),
    _define("group.delete", "Delete groups", _C.GROUP, _A.DELETE),
    _define("group.manage", "Full group management", _C.GROUP, _A.MANAGE),
    # Tasks -----------------------------------------------------------------
    _define("task.view", "View tasks", _C.TASK, _A.READ),
    _define("task.create", "Create new tasks", _C.TASK, _A.CREATE),
    _define("task.update", "Update tasks", _C.TASK, _A.UPDATE),
    _define("task.delete", "Delete tasks", _C.TASK, _A.DELETE),
    _define("task.assign", "Assign tasks to users", _C.TASK, _A.ASSIGN),
    _define("task.manage", "Full task management", _C.TASK, _A.MANAGE),
    # Files -----------------------------------------------------------------
    _define("file.view", "View files", _C.FILE, _A.READ),
    _define("file.create", "Upload and create files", _C.FILE, _A.CREATE),
    _define("file.update", "Update files", _C.FILE, _A.UPDATE),
    _define("file.delete", "Delete files", _C.FILE, _A.DELETE),
    _define("file.manage", "Full file management", _C.FILE, _A.MANAGE),
)

PERMISSION_REGISTRY: Mapping[str, PermissionDefinition] = {
    definition.name: definition for definition in PERMISSIONS
}

OWNER_ROLE = "owner"
ADMIN_ROLE = "admin"
MEMBER_ROLE = "member"

SYSTEM_ROLES: tuple[SystemRoleDefinition, ...] = (
    SystemRoleDefinition(
        name=OWNER_ROLE,
        description="Owner of the workplace with full access",
        permissions=(WILDCARD,),
    ),
    SystemRoleDefinition(
        name=ADMIN_ROLE,
        description="Administrator with management access",
        permissions=(
            "workplace.view",
            "workplace.update",
            "user.view",
            "user.invite",
            "user.update",
            "user.delete",
            "role.view",
            "role.assign",
            "group.manage",
            "task.manage",
            "file.manage",
        ),
    ),
    SystemRoleDefinition(
        name=MEMBER_ROLE,
        description="Regular member with basic access",
        permissions=(
            "workplace.view",
            "user.view",
            "group.view",
            "group.create",
            "task.view",
            "task.create",
            "task.update",
            "file.view",
            "file.create",
            "file.update",
        ),
    ),
)

SYSTEM_ROLE_BY_NAME: Mapping[str, SystemRoleDefinition] = {
    definition.name: definition for definition in SYSTEM_ROLES
}


def permissions_in_category(category: PermissionCategory | str) -> tuple[PermissionDefinition, ...]:
    wanted = PermissionCategory(category)
    return tuple(definition for definition in PERMISSIONS if definition.category == wanted)


__all__ = [
    "ADMIN_ROLE",
    "MEMBER_ROLE",
    "OWNER_ROLE",
    "PERMISSIONS",
    "PERMISSION_REGISTRY",
    "PermissionAction",
    "PermissionCategory",
    "PermissionDefinition",
    "SYSTEM_ROLES",
    "SYSTEM_ROLE_BY_NAME",
    "SystemRoleDefinition",
    "WILDCARD",
    "permissions_in_category",
]
