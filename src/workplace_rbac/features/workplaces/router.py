from __future__ import annotations

from fastapi import APIRouter, status

from workplace_rbac.api.deps import ActorDep, RbacServiceDep, WorkplacesServiceDep
from workplace_rbac.features.rbac.router import serialize_role

from .schemas import WorkplaceCreate, WorkplaceOut

router = APIRouter(tags=["workplaces"])


@router.post(
    "/workplaces",
    response_model=WorkplaceOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workplace and seat the caller as its owner",
)
def create_workplace(
    payload: WorkplaceCreate,
    actor: ActorDep,
    service: WorkplacesServiceDep,
    rbac: RbacServiceDep,
) -> WorkplaceOut:
    workplace, bootstrap = service.create_workplace(
        name=payload.name,
        description=payload.description,
        timezone=payload.timezone,
        created_by=actor,
    )
    return WorkplaceOut(
        id=workplace.id,
        name=workplace.name,
        description=workplace.description,
        timezone=workplace.timezone,
        active=workplace.active,
        created_by=workplace.created_by,
        created_at=workplace.created_at,
        roles=[serialize_role(view) for view in rbac.role_views(bootstrap.roles)],
    )


__all__ = ["router"]
