"""Per-request dependencies shared by API routers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from starlette.requests import HTTPConnection

from workplace_rbac.db.session import get_db_read, get_db_write
from workplace_rbac.features.rbac.errors import Unauthenticated
from workplace_rbac.features.rbac.service import RbacService
from workplace_rbac.features.workplaces.service import WorkplacesService
from workplace_rbac.settings import Settings, get_settings

WriteSessionDep = Annotated[Session, Depends(get_db_write)]
ReadSessionDep = Annotated[Session, Depends(get_db_read)]


def get_app_settings(conn: HTTPConnection) -> Settings:
    settings = getattr(conn.app.state, "settings", None)
    return settings if settings is not None else get_settings()


SettingsDep = Annotated[Settings, Depends(get_app_settings)]


def get_current_actor(request: Request, settings: SettingsDep) -> str:
    """Resolve the acting user id supplied by the authentication layer."""

    actor = (request.headers.get(settings.actor_header) or "").strip()
    if not actor:
        raise Unauthenticated("Authentication required")
    return actor


ActorDep = Annotated[str, Depends(get_current_actor)]


def get_rbac_service(session: WriteSessionDep, settings: SettingsDep) -> RbacService:
    return RbacService(session=session, enforce_expiry=settings.grant_expiry_enforced)


def get_rbac_service_read(session: ReadSessionDep, settings: SettingsDep) -> RbacService:
    return RbacService(session=session, enforce_expiry=settings.grant_expiry_enforced)


def get_workplaces_service(session: WriteSessionDep) -> WorkplacesService:
    return WorkplacesService(session=session)


RbacServiceDep = Annotated[RbacService, Depends(get_rbac_service)]
RbacServiceReadDep = Annotated[RbacService, Depends(get_rbac_service_read)]
WorkplacesServiceDep = Annotated[WorkplacesService, Depends(get_workplaces_service)]

__all__ = [
    "ActorDep",
    "RbacServiceDep",
    "RbacServiceReadDep",
    "ReadSessionDep",
    "SettingsDep",
    "WorkplacesServiceDep",
    "WriteSessionDep",
    "get_app_settings",
    "get_current_actor",
]
