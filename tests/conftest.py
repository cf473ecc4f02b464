"""Shared pytest fixtures for all test suites."""

import os
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import URL
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from saas_platform.app.config import Settings
from saas_platform.app.db.models import CentralBase, TenantBase
from saas_platform.app.models.tenant import Tenant, TenantStatus


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: tenancy enabled, SQLite everywhere, no Redis."""
    return Settings(
        environment="development",
        database_url="sqlite+aiosqlite:///:memory:",
        redis_url=None,
        tenant_db_driver="sqlite+aiosqlite",
        tenant_db_username="",
        tenant_db_password="",
    )


@pytest.fixture
def make_tenant() -> Callable[..., Tenant]:
    """Factory for active tenants with unique domain and database name."""

    def _make(**overrides: Any) -> Tenant:
        suffix = uuid.uuid4().hex[:8]
        fields: dict[str, Any] = {
            "domain": f"t{suffix}.example.com",
            "company_name": f"Company {suffix}",
            "database_name": f"tenant_{suffix}",
            "status": TenantStatus.active,
        }
        fields.update(overrides)
        return Tenant(**fields)

    return _make


@pytest.fixture
def tenant_engine_factory(tmp_path: Path) -> Callable[[URL], AsyncEngine]:
    """Engine factory mapping each tenant database name to its own SQLite file.

    NullPool keeps engines usable across event loops (TestClient runs the app
    in its own loop).
    """

    def _factory(url: URL) -> AsyncEngine:
        return create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path}/{url.database}.db", poolclass=NullPool
        )

    return _factory


@pytest.fixture
def create_tenant_schema(
    tmp_path: Path,
) -> Callable[[str], Awaitable[None]]:
    """Create the tenant schema in the SQLite file backing `database_name`."""

    async def _create(database_name: str) -> None:
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path}/{database_name}.db", poolclass=NullPool
        )
        async with engine.begin() as conn:
            await conn.run_sync(TenantBase.metadata.create_all)
        await engine.dispose()

    return _create


@pytest_asyncio.fixture
async def central_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite central database with the registry schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(CentralBase.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def tenant_session() -> AsyncGenerator[AsyncSession, None]:
    """Session on an in-memory SQLite tenant database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(TenantBase.metadata.create_all)

    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(CentralBase.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(CentralBase.metadata.drop_all)

    await engine.dispose()
