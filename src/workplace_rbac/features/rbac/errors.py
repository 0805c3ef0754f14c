"""Typed, recoverable RBAC failures.

Each error carries the HTTP status the API layer responds with. Storage
failures are deliberately absent here: they propagate as SQLAlchemy errors.
"""

from __future__ import annotations

__all__ = [
    "DuplicateName",
    "Forbidden",
    "MembershipExists",
    "NotFound",
    "RbacError",
    "RoleInUse",
    "SystemRoleImmutable",
    "Unauthenticated",
    "UnknownPermission",
]


class RbacError(ValueError):
    """Base class for access-control errors."""

    status_code: int = 400
    code: str = "rbac_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(RbacError):
    """Raised when a role, permission or membership is missing or out of scope."""

    status_code = 404
    code = "not_found"


class UnknownPermission(NotFound):
    """Raised when a permission name is not part of the catalog."""

    code = "unknown_permission"

    def __init__(self, names: tuple[str, ...]) -> None:
        super().__init__(f"Permissions not found: {', '.join(names)}")
        self.names = names


class DuplicateName(RbacError):
    """Raised when an active role with the same name exists in the workplace."""

    status_code = 409
    code = "duplicate_name"

    def __init__(self, name: str, workplace_id: str | None) -> None:
        super().__init__(f"Role '{name}' already exists in this workplace")
        self.name = name
        self.workplace_id = workplace_id


class SystemRoleImmutable(RbacError):
    """Raised when attempting to mutate a system role."""

    status_code = 403
    code = "system_role_immutable"


class RoleInUse(RbacError):
    """Raised when deleting a role still referenced by active memberships."""

    status_code = 409
    code = "role_in_use"

    def __init__(self, count: int) -> None:
        super().__init__(f"Cannot delete role: {count} active member(s) still assigned")
        self.count = count


class Forbidden(RbacError):
    """Raised when the actor lacks a permission or fails the owner guard."""

    status_code = 403
    code = "forbidden"


class Unauthenticated(RbacError):
    """Raised by the API boundary when no actor can be resolved."""

    status_code = 401
    code = "unauthenticated"


class MembershipExists(RbacError):
    """Raised when a user already holds a membership in the workplace."""

    status_code = 409
    code = "membership_exists"
