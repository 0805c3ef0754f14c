"""Top-level API router composition."""

from __future__ import annotations

from fastapi import APIRouter

from workplace_rbac.features.rbac.router import router as rbac_router
from workplace_rbac.features.workplaces.router import router as workplaces_router


def create_api_router() -> APIRouter:
    api_router = APIRouter()
    api_router.include_router(workplaces_router)
    api_router.include_router(rbac_router)
    return api_router


__all__ = ["create_api_router"]
