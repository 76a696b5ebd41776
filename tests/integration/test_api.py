"""Tests for the RBAC HTTP surface and the guard dependencies."""

import pytest
import pytest_asyncio
from fastapi import Depends
from httpx import ASGITransport, AsyncClient

from hailcrm.api.deps import get_cache, get_current_user_id, get_db
from hailcrm.api.main import create_app
from hailcrm.api.middleware.rbac import financial_view, sales
from hailcrm.core.config import Settings
from hailcrm.core.rbac import admin

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]


class Auth:
    """Mutable stand-in for the authentication layer."""

    user_id = None


def _build_app(session_factory, cache, auth, **settings):
    app = create_app(Settings(**settings))

    async def _override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_current_user_id] = lambda: auth.user_id

    @app.get("/guarded/financial")
    async def guarded_financial(user_id: int = Depends(financial_view)):
        return {"user_id": user_id}

    @app.get("/guarded/sales")
    async def guarded_sales(user_id: int = Depends(sales)):
        return {"user_id": user_id}

    return app


@pytest.fixture
def auth():
    return Auth()


@pytest_asyncio.fixture
async def users(db_session, cache, role_ids, user_factory):
    """An administrator, a sales agent and a user with no grants."""
    admin_user = await user_factory(name="Owner")
    agent = await user_factory(name="Agent")
    nobody = await user_factory(name="Nobody")
    await admin.assign_role(db_session, admin_user.id, role_ids["admin"], None, cache=cache)
    await admin.assign_role(db_session, agent.id, role_ids["sales"], admin_user.id, cache=cache)
    return {"admin": admin_user.id, "agent": agent.id, "nobody": nobody.id}


@pytest_asyncio.fixture
async def client(session_factory, cache, auth, seeded):
    app = _build_app(session_factory, cache, auth)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class TestGuardDependencies:

    async def test_permission_guard_allows(self, client, auth, users):
        auth.user_id = users["agent"]
        response = await client.get("/guarded/financial")
        assert response.status_code == 200
        assert response.json() == {"user_id": users["agent"]}

    async def test_permission_guard_denies(self, client, auth, users):
        auth.user_id = users["nobody"]
        response = await client.get("/guarded/financial")
        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "FORBIDDEN"
        assert body["detail"] == (
            "You don't have permission to perform this action. Required permission: view_financial_data"
        )

    async def test_role_guard(self, client, auth, users):
        auth.user_id = users["agent"]
        assert (await client.get("/guarded/sales")).status_code == 200

        auth.user_id = users["admin"]
        response = await client.get("/guarded/sales")
        assert response.status_code == 403
        assert response.json()["detail"].endswith("Required role: sales")

    async def test_generic_forbidden_detail(self, session_factory, cache, auth, users):
        app = _build_app(session_factory, cache, auth, expose_forbidden_detail=False)
        auth.user_id = users["nobody"]
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/guarded/financial")

        assert response.status_code == 403
        assert response.json()["detail"] == "Insufficient permissions"

    async def test_unauthenticated(self, session_factory, cache, auth, seeded):
        app = _build_app(session_factory, cache, auth)
        del app.dependency_overrides[get_current_user_id]
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/api/rbac/me/permissions")
        assert response.status_code == 401


class TestCatalogEndpoints:

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_roles(self, client, auth, users):
        auth.user_id = users["nobody"]
        response = await client.get("/api/rbac/roles")
        assert response.status_code == 200
        assert len(response.json()) == 7

    async def test_permissions(self, client, auth, users):
        auth.user_id = users["nobody"]
        response = await client.get("/api/rbac/permissions")
        assert response.status_code == 200
        data = response.json()
        assert len(data["all"]) == 12
        assert "financial" in data["by_category"]


class TestSelfService:

    async def test_my_access(self, client, auth, users):
        auth.user_id = users["agent"]
        response = await client.get("/api/rbac/me/access")
        assert response.status_code == 200
        data = response.json()
        assert data["roles"] == ["sales"]
        assert data["permissions"] == ["export_data", "view_analytics", "view_financial_data"]
        assert data["is_admin"] is False

    async def test_own_roles_allowed(self, client, auth, users):
        auth.user_id = users["agent"]
        response = await client.get(f"/api/rbac/users/{users['agent']}/roles")
        assert response.status_code == 200
        assert response.json() == ["sales"]

    async def test_other_users_roles_need_admin(self, client, auth, users):
        auth.user_id = users["agent"]
        response = await client.get(f"/api/rbac/users/{users['admin']}/permissions")
        assert response.status_code == 403

        auth.user_id = users["admin"]
        response = await client.get(f"/api/rbac/users/{users['agent']}/permissions")
        assert response.status_code == 200


class TestAdminEndpoints:

    async def test_list_users_requires_admin(self, client, auth, users):
        auth.user_id = users["agent"]
        response = await client.get("/api/rbac/users")
        assert response.status_code == 403
        assert response.json()["detail"] == "You must be an administrator to perform this action."

    async def test_list_users(self, client, auth, users):
        auth.user_id = users["admin"]
        response = await client.get("/api/rbac/users")
        assert response.status_code == 200
        by_id = {u["id"]: u for u in response.json()}
        assert by_id[users["agent"]]["roles"] == ["sales"]
        assert by_id[users["agent"]]["permission_count"] == 3

    async def test_user_details(self, client, auth, users):
        auth.user_id = users["admin"]
        response = await client.get(f"/api/rbac/users/{users['agent']}")
        assert response.status_code == 200
        data = response.json()
        assert data["roles"][0]["role_name"] == "sales"
        assert data["roles"][0]["assigned_by"] == users["admin"]

    async def test_user_details_not_found(self, client, auth, users):
        auth.user_id = users["admin"]
        response = await client.get("/api/rbac/users/4040")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_assign_and_duplicate(self, client, auth, users, role_ids):
        auth.user_id = users["admin"]
        url = f"/api/rbac/users/{users['nobody']}/roles"

        response = await client.post(url, json={"role_id": role_ids["marketing"]})
        assert response.status_code == 201
        assert response.json()["success"] is True

        response = await client.post(url, json={"role_id": role_ids["marketing"]})
        assert response.status_code == 409
        assert response.json()["detail"] == "User already has this role"

    async def test_grant_takes_effect_immediately(self, client, auth, users, permission_ids):
        auth.user_id = users["nobody"]
        assert (await client.get("/guarded/financial")).status_code == 403

        auth.user_id = users["admin"]
        response = await client.post(
            f"/api/rbac/users/{users['nobody']}/permissions",
            json={"permission_id": permission_ids["view_financial_data"]},
        )
        assert response.status_code == 201

        auth.user_id = users["nobody"]
        assert (await client.get("/guarded/financial")).status_code == 200

    async def test_revoke_and_remove(self, client, auth, users, role_ids, permission_ids):
        auth.user_id = users["admin"]
        agent = users["agent"]

        response = await client.delete(f"/api/rbac/users/{agent}/permissions/{permission_ids['manage_tags']}")
        assert response.status_code == 404

        response = await client.delete(f"/api/rbac/users/{agent}/roles/{role_ids['sales']}")
        assert response.status_code == 200

        response = await client.get(f"/api/rbac/users/{agent}/roles")
        assert response.json() == []

    async def test_bulk_replace(self, client, auth, users, role_ids):
        auth.user_id = users["admin"]
        agent = users["agent"]

        response = await client.put(
            f"/api/rbac/users/{agent}/roles",
            json={"role_ids": [role_ids["estimator"], role_ids["marketing"]]},
        )
        assert response.status_code == 200

        response = await client.get(f"/api/rbac/users/{agent}/roles")
        assert response.json() == ["estimator", "marketing"]

        response = await client.put(f"/api/rbac/users/{agent}/roles", json={"role_ids": [4040]})
        assert response.status_code == 404

    async def test_mutations_require_admin(self, client, auth, users, role_ids):
        auth.user_id = users["agent"]
        response = await client.post(
            f"/api/rbac/users/{users['agent']}/roles", json={"role_id": role_ids["admin"]}
        )
        assert response.status_code == 403
