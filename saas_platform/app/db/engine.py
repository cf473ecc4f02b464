"""Database engines and session factories.

The central engine always points at the registry database and is owned by
the application. Tenant engines are owned by the connection router's pool.
"""

from sqlalchemy import URL
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from saas_platform.app.config import Settings
from saas_platform.app.models.tenant import DatabaseTarget


def to_async_url(database_url: str) -> str:
    """Convert sync driver URLs to their async equivalents."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


def create_async_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the central async engine from settings.

    Raises:
        ValueError: If no central database URL is configured.
    """
    database_url = settings.central_database_url
    if not database_url:
        raise ValueError(
            "DATABASE_URL must be set to a valid connection string. "
            "Please configure the database_url setting."
        )

    return create_async_engine(to_async_url(database_url), pool_pre_ping=True, echo=False)


def build_tenant_url(target: DatabaseTarget, settings: Settings) -> URL:
    """Build a tenant connection URL from its target and the credentials template."""
    return URL.create(
        drivername=settings.tenant_db_driver,
        username=settings.tenant_db_username or None,
        password=settings.tenant_db_password or None,
        host=target.host,
        port=target.port,
        database=target.database,
    )


def create_tenant_engine(url: URL) -> AsyncEngine:
    """Default factory for per-tenant engines."""
    return create_async_engine(url, pool_pre_ping=True, echo=False)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async sessionmaker bound to the engine."""
    return async_sessionmaker(bind=engine, expire_on_commit=False)

