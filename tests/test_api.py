from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from workplace_rbac.db.migrate import run_migrations
from workplace_rbac.db.session import get_session_factory_from_app
from workplace_rbac.features.rbac.registry import PERMISSIONS, PermissionCategory
from workplace_rbac.lifecycles import create_application_lifespan
from workplace_rbac.main import create_app

from conftest import SeededWorkplace, build_test_settings, seed_workplace

pytestmark = pytest.mark.asyncio


@dataclass(frozen=True, slots=True)
class ApiHarness:
    app: FastAPI
    client: AsyncClient
    seeded: SeededWorkplace

    def as_user(self, user_id: str) -> dict[str, str]:
        return {"X-Actor-Id": user_id}


@pytest_asyncio.fixture()
async def api(tmp_path: Path) -> AsyncIterator[ApiHarness]:
    settings = build_test_settings(
        f"sqlite:///{tmp_path / 'api.sqlite'}",
        bootstrap_on_startup=True,
    )
    run_migrations(settings)
    app = create_app(settings)
    async with LifespanManager(app):
        with get_session_factory_from_app(app)() as session:
            seeded = seed_workplace(session)
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield ApiHarness(app=app, client=client, seeded=seeded)


def _roles_url(api: ApiHarness) -> str:
    return f"/api/workplaces/{api.seeded.id}/roles"


async def test_startup_fails_fast_without_migrations(tmp_path: Path) -> None:
    settings = build_test_settings(f"sqlite:///{tmp_path / 'empty.sqlite'}")
    app = create_app(settings)
    lifespan = create_application_lifespan(settings=settings)

    with pytest.raises(RuntimeError, match="workplace-rbac migrate"):
        async with lifespan(app):
            pass

    assert app.state.db_engine is None


async def test_missing_actor_is_unauthenticated(api: ApiHarness) -> None:
    response = await api.client.get("/api/permissions")

    assert response.status_code == 401
    assert response.json()["code"] == "unauthenticated"


async def test_list_permissions_grouped_by_category(api: ApiHarness) -> None:
    response = await api.client.get("/api/permissions", headers=api.as_user("anyone"))

    assert response.status_code == 200
    groups = {group["category"]: group["permissions"] for group in response.json()}
    assert list(groups) == [category.value for category in PermissionCategory]
    assert sum(len(items) for items in groups.values()) == len(PERMISSIONS)
    assert "role.assign" in {item["name"] for item in groups["role"]}
    assert all(item["category"] == "task" for item in groups["task"])
    assert groups["settings"] == []


async def test_create_workplace_seats_creator_as_owner(api: ApiHarness) -> None:
    response = await api.client.post(
        "/api/workplaces",
        json={"name": "Initech", "description": "TPS reports"},
        headers=api.as_user("founder"),
    )

    assert response.status_code == 201
    payload = response.json()
    roles = {role["name"]: role for role in payload["roles"]}
    assert set(roles) == {"owner", "admin", "member"}
    assert roles["owner"]["permissions"] == ["*"]
    assert all(role["is_system"] for role in roles.values())

    mine = await api.client.get(
        f"/api/workplaces/{payload['id']}/user/role",
        headers=api.as_user("founder"),
    )
    assert mine.json()["role"]["name"] == "owner"


async def test_list_roles_is_guarded(api: ApiHarness) -> None:
    allowed = await api.client.get(_roles_url(api), headers=api.as_user(api.seeded.admin_id))
    denied = await api.client.get(_roles_url(api), headers=api.as_user(api.seeded.member_id))

    assert allowed.status_code == 200
    assert {role["name"] for role in allowed.json()} == {"owner", "admin", "member"}
    assert denied.status_code == 403
    assert denied.json()["code"] == "forbidden"


async def test_current_user_role(api: ApiHarness) -> None:
    url = f"/api/workplaces/{api.seeded.id}/user/role"

    member = await api.client.get(url, headers=api.as_user(api.seeded.member_id))
    stranger = await api.client.get(url, headers=api.as_user("stranger"))

    assert member.status_code == 200
    assert member.json()["role"]["name"] == "member"
    assert "task.create" in member.json()["role"]["permissions"]
    assert stranger.status_code == 200
    assert stranger.json()["role"] is None


async def test_check_permission(api: ApiHarness) -> None:
    url = f"/api/workplaces/{api.seeded.id}/permissions/check"

    granted = await api.client.get(
        url,
        params={"permission": "task.create"},
        headers=api.as_user(api.seeded.member_id),
    )
    denied = await api.client.get(
        url,
        params={"permission": "role.create"},
        headers=api.as_user(api.seeded.member_id),
    )

    assert granted.json()["granted"] is True
    assert denied.json()["granted"] is False


async def test_role_lifecycle(api: ApiHarness) -> None:
    owner = api.as_user(api.seeded.owner_id)

    created = await api.client.post(
        _roles_url(api),
        json={"name": "Reviewer", "permissions": ["task.view", "task.update"]},
        headers=owner,
    )
    assert created.status_code == 201
    role = created.json()
    assert role["name"] == "reviewer"
    assert role["permissions"] == ["task.update", "task.view"]

    updated = await api.client.put(
        f"{_roles_url(api)}/{role['id']}",
        json={"permissions": ["file.view"]},
        headers=owner,
    )
    assert updated.status_code == 200
    assert updated.json()["permissions"] == ["file.view"]

    deleted = await api.client.delete(f"{_roles_url(api)}/{role['id']}", headers=owner)
    assert deleted.status_code == 204

    listing = await api.client.get(_roles_url(api), headers=owner)
    assert "reviewer" not in {item["name"] for item in listing.json()}


async def test_create_role_errors(api: ApiHarness) -> None:
    owner = api.as_user(api.seeded.owner_id)

    duplicate = await api.client.post(_roles_url(api), json={"name": "admin"}, headers=owner)
    unknown = await api.client.post(
        _roles_url(api),
        json={"name": "odd", "permissions": ["task.juggle"]},
        headers=owner,
    )
    invalid = await api.client.post(_roles_url(api), json={"name": ""}, headers=owner)
    forbidden = await api.client.post(
        _roles_url(api),
        json={"name": "sneaky"},
        headers=api.as_user(api.seeded.member_id),
    )

    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "duplicate_name"
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "unknown_permission"
    assert invalid.status_code == 422
    assert invalid.json()["code"] == "invalid_request"
    assert forbidden.status_code == 403


async def test_system_roles_cannot_be_edited(api: ApiHarness) -> None:
    response = await api.client.put(
        f"{_roles_url(api)}/{api.seeded.member_role_id}",
        json={"permissions": ["*"]},
        headers=api.as_user(api.seeded.owner_id),
    )

    assert response.status_code == 403
    assert response.json()["code"] == "system_role_immutable"


async def test_assign_role_then_delete_in_use(api: ApiHarness) -> None:
    owner = api.as_user(api.seeded.owner_id)
    created = await api.client.post(_roles_url(api), json={"name": "crew"}, headers=owner)
    role_id = created.json()["id"]

    assigned = await api.client.post(
        f"/api/workplaces/{api.seeded.id}/members/assign-role",
        json={"user_id": api.seeded.member_id, "role_id": role_id},
        headers=api.as_user(api.seeded.admin_id),
    )
    assert assigned.status_code == 200
    assert assigned.json()["role_id"] == role_id
    assert assigned.json()["status"] == "active"

    blocked = await api.client.delete(f"{_roles_url(api)}/{role_id}", headers=owner)
    assert blocked.status_code == 409
    assert blocked.json() == {
        "code": "role_in_use",
        "detail": "Cannot delete role: 1 active member(s) still assigned",
        "count": 1,
    }


async def test_owner_guard_over_http(api: ApiHarness) -> None:
    response = await api.client.post(
        f"/api/workplaces/{api.seeded.id}/members/assign-role",
        json={"user_id": api.seeded.owner_id, "role_id": api.seeded.member_role_id},
        headers=api.as_user(api.seeded.admin_id),
    )

    assert response.status_code == 403


async def test_request_id_is_echoed(api: ApiHarness) -> None:
    response = await api.client.get(
        "/api/permissions",
        headers={**api.as_user("anyone"), "X-Request-Id": "req-123"},
    )

    assert response.headers["X-Request-Id"] == "req-123"


async def test_unknown_route_uses_error_envelope(api: ApiHarness) -> None:
    response = await api.client.get("/api/nope", headers=api.as_user("anyone"))

    assert response.status_code == 404
    assert response.json()["code"] == "http_error"
