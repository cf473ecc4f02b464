"""FastAPI dependencies for tenant-aware routes.

Tenant-scoped dependencies read the binding published by TenantMiddleware.
They fail closed: a tenant route reached without a binding is a server
error, never a silent fallback to the central database.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from saas_platform.app.config import Settings
from saas_platform.app.db.sql_repositories import SqlOrganizationRepository
from saas_platform.app.models.tenant import Tenant
from saas_platform.app.services.organizations import OrganizationService
from saas_platform.app.services.tenants import TenantService
from saas_platform.app.tenancy.context import TenantBinding, current_binding


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_tenant_service(request: Request) -> TenantService:
    return request.app.state.tenant_service


async def get_central_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Session on the central database."""
    async with request.app.state.session_factory() as session:
        yield session


def get_current_binding() -> TenantBinding:
    """Active tenant binding.

    Raises:
        HTTPException: 500 if the request is not tenant-bound
    """
    binding = current_binding()
    if binding is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="No tenant is bound to this request",
        )
    return binding


def get_current_tenant(
    binding: Annotated[TenantBinding, Depends(get_current_binding)],
) -> Tenant:
    return binding.tenant


async def get_tenant_session(
    binding: Annotated[TenantBinding, Depends(get_current_binding)],
) -> AsyncGenerator[AsyncSession, None]:
    """Session on the bound tenant's database."""
    async with AsyncSession(binding.engine, expire_on_commit=False) as session:
        yield session


def get_organization_service(
    session: Annotated[AsyncSession, Depends(get_tenant_session)],
) -> OrganizationService:
    return OrganizationService(SqlOrganizationRepository(session))
