from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Path, Query, Response, status

from workplace_rbac.api.deps import ActorDep, RbacServiceDep, RbacServiceReadDep
from workplace_rbac.features.rbac.schemas import (
    AssignRoleRequest,
    MembershipOut,
    PermissionCheckOut,
    PermissionGroupOut,
    PermissionOut,
    RoleCreate,
    RoleOut,
    RoleUpdate,
    UserRoleOut,
)
from workplace_rbac.features.rbac.service import RoleView

router = APIRouter(tags=["rbac"])

WorkplacePath = Annotated[
    str,
    Path(description="Workplace identifier", alias="workplaceId"),
]
RolePath = Annotated[
    str,
    Path(description="Role identifier", alias="roleId"),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def serialize_role(view: RoleView) -> RoleOut:
    role = view.role
    return RoleOut(
        id=role.id,
        name=role.name,
        description=role.description,
        workplace_id=role.workplace_id,
        parent_id=role.parent_id,
        is_system=role.is_system,
        permissions=view.sorted_permissions,
        created_at=role.created_at,
        updated_at=role.updated_at,
    )


# ---------------------------------------------------------------------------
# Permission catalog
# ---------------------------------------------------------------------------


@router.get(
    "/permissions",
    response_model=list[PermissionGroupOut],
    summary="List catalog permissions grouped by category",
)
def list_permissions(
    _actor: ActorDep,
    service: RbacServiceReadDep,
) -> list[PermissionGroupOut]:
    return [
        PermissionGroupOut(
            category=category,
            permissions=[PermissionOut.model_validate(item) for item in permissions],
        )
        for category, permissions in service.permissions_by_category()
    ]


# ---------------------------------------------------------------------------
# Workplace roles
# ---------------------------------------------------------------------------


@router.get(
    "/workplaces/{workplaceId}/roles",
    response_model=list[RoleOut],
    summary="List the active roles of a workplace",
)
def list_roles(
    workplace_id: WorkplacePath,
    actor: ActorDep,
    service: RbacServiceReadDep,
) -> list[RoleOut]:
    views = service.list_roles(actor=actor, workplace_id=workplace_id)
    return [serialize_role(view) for view in views]


@router.get(
    "/workplaces/{workplaceId}/user/role",
    response_model=UserRoleOut,
    summary="Return the caller's role in a workplace",
)
def get_current_user_role(
    workplace_id: WorkplacePath,
    actor: ActorDep,
    service: RbacServiceReadDep,
) -> UserRoleOut:
    view = service.get_user_role(user_id=actor, workplace_id=workplace_id)
    return UserRoleOut(
        workplace_id=workplace_id,
        user_id=actor,
        role=serialize_role(view) if view is not None else None,
    )


@router.get(
    "/workplaces/{workplaceId}/permissions/check",
    response_model=PermissionCheckOut,
    summary="Check whether the caller holds a permission",
)
def check_permission(
    workplace_id: WorkplacePath,
    actor: ActorDep,
    service: RbacServiceReadDep,
    permission: Annotated[str, Query(min_length=1)],
) -> PermissionCheckOut:
    granted = service.has_permission(
        user_id=actor,
        workplace_id=workplace_id,
        permission=permission,
    )
    return PermissionCheckOut(
        workplace_id=workplace_id,
        user_id=actor,
        permission=permission,
        granted=granted,
    )


@router.post(
    "/workplaces/{workplaceId}/roles",
    response_model=RoleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a custom role",
)
def create_role(
    workplace_id: WorkplacePath,
    payload: RoleCreate,
    actor: ActorDep,
    service: RbacServiceDep,
) -> RoleOut:
    view = service.create_role(
        actor=actor,
        workplace_id=workplace_id,
        name=payload.name,
        description=payload.description,
        permissions=payload.permissions,
    )
    return serialize_role(view)


@router.put(
    "/workplaces/{workplaceId}/roles/{roleId}",
    response_model=RoleOut,
    summary="Update a custom role",
)
def update_role(
    workplace_id: WorkplacePath,
    role_id: RolePath,
    payload: RoleUpdate,
    actor: ActorDep,
    service: RbacServiceDep,
) -> RoleOut:
    view = service.update_role(
        actor=actor,
        workplace_id=workplace_id,
        role_id=role_id,
        name=payload.name,
        description=payload.description,
        permissions=payload.permissions,
    )
    return serialize_role(view)


@router.delete(
    "/workplaces/{workplaceId}/roles/{roleId}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Soft-delete a custom role",
)
def delete_role(
    workplace_id: WorkplacePath,
    role_id: RolePath,
    actor: ActorDep,
    service: RbacServiceDep,
) -> Response:
    service.delete_role(actor=actor, workplace_id=workplace_id, role_id=role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/workplaces/{workplaceId}/members/assign-role",
    response_model=MembershipOut,
    summary="Assign a role to a workplace member",
)
def assign_role(
    workplace_id: WorkplacePath,
    payload: AssignRoleRequest,
    actor: ActorDep,
    service: RbacServiceDep,
) -> MembershipOut:
    membership = service.assign_role(
        actor=actor,
        workplace_id=workplace_id,
        user_id=payload.user_id,
        role_id=payload.role_id,
    )
    return MembershipOut.model_validate(membership)


__all__ = ["router", "serialize_role"]
