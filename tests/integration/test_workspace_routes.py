"""Integration tests for tenant-scoped organization routes.

Each tenant database is a separate SQLite file, so these tests also show
that data written through one tenant's binding is invisible to another.
"""

import asyncio
from collections.abc import Awaitable, Callable
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import URL
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from saas_platform.app.config import Settings
from saas_platform.app.db.inmemory import InMemoryTenantRegistry
from saas_platform.app.main import create_app
from saas_platform.app.models.tenant import Tenant, TenantPlan, TenantStatus


@pytest.fixture
def acme() -> Tenant:
    return Tenant(
        domain="acme.example.com",
        company_name="Acme Corp",
        database_name="tenant_acme",
        status=TenantStatus.active,
        plan=TenantPlan.professional,
        max_organizations=3,
    )


@pytest.fixture
def globex() -> Tenant:
    return Tenant(
        domain="globex.example.com",
        company_name="Globex",
        database_name="tenant_globex",
        status=TenantStatus.active,
    )


@pytest.fixture
def app(
    settings: Settings,
    acme: Tenant,
    globex: Tenant,
    tenant_engine_factory: Callable[[URL], AsyncEngine],
    create_tenant_schema: Callable[[str], Awaitable[None]],
) -> FastAPI:
    for tenant in (acme, globex):
        asyncio.run(create_tenant_schema(tenant.database_name))

    return create_app(
        settings,
        central_engine=create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=NullPool),
        registry=InMemoryTenantRegistry([acme, globex]),
        engine_factory=tenant_engine_factory,
        provisioner=AsyncMock(),
    )


@pytest.fixture
def acme_client(app: FastAPI) -> TestClient:
    return TestClient(app, base_url="http://acme.example.com")


@pytest.fixture
def globex_client(app: FastAPI) -> TestClient:
    return TestClient(app, base_url="http://globex.example.com")


def test_current_tenant_reports_plan_features(acme_client: TestClient) -> None:
    data = acme_client.get("/api/v1/tenant").json()

    assert data["plan"] == "professional"
    assert "api_access" in data["features"]


def test_create_and_list_organizations(acme_client: TestClient, acme: Tenant) -> None:
    response = acme_client.post(
        "/api/v1/organizations", json={"name": "Acme HQ", "type": "headquarters"}
    )

    assert response.status_code == 201
    org = response.json()
    assert org["tenant_id"] == str(acme.id)
    assert org["code"].startswith("ACM")
    assert org["currency"] == "USD"

    listed = acme_client.get("/api/v1/organizations").json()
    assert [o["id"] for o in listed] == [org["id"]]


def test_organizations_are_isolated_per_tenant(
    acme_client: TestClient, globex_client: TestClient
) -> None:
    acme_client.post("/api/v1/organizations", json={"name": "Acme HQ"})
    globex_client.post("/api/v1/organizations", json={"name": "Globex HQ"})

    acme_names = [o["name"] for o in acme_client.get("/api/v1/organizations").json()]
    globex_names = [o["name"] for o in globex_client.get("/api/v1/organizations").json()]

    assert acme_names == ["Acme HQ"]
    assert globex_names == ["Globex HQ"]


def test_hierarchy_endpoints(acme_client: TestClient) -> None:
    root = acme_client.post("/api/v1/organizations", json={"name": "HQ"}).json()
    child = acme_client.post(
        "/api/v1/organizations", json={"name": "Branch", "parent_id": root["id"]}
    ).json()

    roots = acme_client.get("/api/v1/organizations/roots").json()
    children = acme_client.get(f"/api/v1/organizations/{root['id']}/children").json()
    active = acme_client.get("/api/v1/organizations/active").json()

    assert [o["id"] for o in roots] == [root["id"]]
    assert [o["id"] for o in children] == [child["id"]]
    assert {o["id"] for o in active} == {root["id"], child["id"]}

    conflict = acme_client.delete(f"/api/v1/organizations/{root['id']}")
    assert conflict.status_code == 409

    assert acme_client.delete(f"/api/v1/organizations/{child['id']}").status_code == 204
    assert acme_client.delete(f"/api/v1/organizations/{root['id']}").status_code == 204
    assert acme_client.get(f"/api/v1/organizations/{root['id']}").status_code == 404


def test_update_rejects_cycle(acme_client: TestClient) -> None:
    root = acme_client.post("/api/v1/organizations", json={"name": "HQ"}).json()

    response = acme_client.patch(
        f"/api/v1/organizations/{root['id']}", json={"parent_id": root["id"]}
    )

    assert response.status_code == 422


def test_update_organization(acme_client: TestClient) -> None:
    root = acme_client.post("/api/v1/organizations", json={"name": "HQ"}).json()

    response = acme_client.patch(
        f"/api/v1/organizations/{root['id']}", json={"name": "Head Office", "status": "inactive"}
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Head Office"
    assert response.json()["status"] == "inactive"


def test_organization_limit_enforced(globex_client: TestClient) -> None:
    """Globex is on the default limit of one organization."""
    assert globex_client.post("/api/v1/organizations", json={"name": "HQ"}).status_code == 201

    response = globex_client.post("/api/v1/organizations", json={"name": "Second"})

    assert response.status_code == 422
    assert "limit" in response.json()["detail"]


def test_unknown_parent_rejected(acme_client: TestClient) -> None:
    response = acme_client.post(
        "/api/v1/organizations",
        json={"name": "Orphan", "parent_id": "00000000-0000-0000-0000-000000000999"},
    )

    assert response.status_code == 422
