"""Dev seeding helper - registers a demo tenant in the central database."""

import asyncio
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from saas_platform.app.config import get_settings
from saas_platform.app.db.engine import create_async_engine_from_settings
from saas_platform.app.db.models import TenantRow
from saas_platform.app.models.tenant import TenantPlan, TenantStatus

# Fixed ID so local tooling and docs can refer to the demo tenant
DEV_TENANT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000ac")
DEV_TENANT_DOMAIN = "acme.example.com"


async def seed_dev_tenant(engine: AsyncEngine | None = None) -> bool:
    """Seed the demo tenant.

    This function is idempotent - safe to run multiple times.

    Args:
        engine: Central database engine (created from settings and disposed
            afterwards when omitted)

    Returns:
        True if the tenant was created, False if it already existed
    """
    if engine is not None:
        return await _seed(engine)

    engine = create_async_engine_from_settings(get_settings())
    try:
        return await _seed(engine)
    finally:
        await engine.dispose()


async def _seed(engine: AsyncEngine) -> bool:
    async with AsyncSession(engine) as session:
        result = await session.execute(
            select(TenantRow).where(TenantRow.domain == DEV_TENANT_DOMAIN)
        )
        if result.scalar_one_or_none() is not None:
            print(f"Dev tenant already exists: {DEV_TENANT_DOMAIN}")
            return False

        print(f"Creating dev tenant {DEV_TENANT_DOMAIN}...")
        session.add(
            TenantRow(
                id=DEV_TENANT_ID,
                domain=DEV_TENANT_DOMAIN,
                subdomain="acme",
                company_name="Acme Corp",
                database_name="tenant_acme",
                database_host="localhost",
                database_port=5432,
                status=TenantStatus.active,
                plan=TenantPlan.professional,
                max_users=50,
                max_organizations=5,
                max_storage_mb=10240,
                billing_email="billing@acme.example.com",
            )
        )
        await session.commit()
        print("Dev seeding complete")
        return True


if __name__ == "__main__":
    asyncio.run(seed_dev_tenant())
