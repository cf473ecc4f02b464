"""Central tenant administration - runs against the central database."""

import uuid
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from saas_platform.app.api.deps import get_tenant_service
from saas_platform.app.models.tenant import Tenant, TenantPlan, TenantStatus
from saas_platform.app.services.tenants import TenantService

router = APIRouter(prefix="/api/v1/central/tenants", tags=["central"])


class CreateTenantRequest(BaseModel):
    """Request body for POST /api/v1/central/tenants."""

    domain: str = Field(..., min_length=1, max_length=255)
    subdomain: str | None = Field(None, max_length=255)
    company_name: str = Field(..., min_length=1, max_length=255)
    database_name: str | None = Field(None, max_length=255)
    database_host: str | None = Field(None, max_length=255)
    database_port: int | None = Field(None, ge=1, le=65535)
    status: TenantStatus = TenantStatus.trial
    plan: TenantPlan = TenantPlan.basic
    max_users: int | None = Field(None, ge=1)
    max_organizations: int | None = Field(None, ge=1)
    subscription_start: datetime | None = None
    subscription_end: datetime | None = None
    billing_email: EmailStr | None = None
    custom_settings: dict[str, Any] | None = None

    @model_validator(mode="after")
    def check_subscription_window(self) -> "CreateTenantRequest":
        if (
            self.subscription_start is not None
            and self.subscription_end is not None
            and self.subscription_end <= self.subscription_start
        ):
            raise ValueError("subscription_end must be after subscription_start")
        return self


class UpdateTenantRequest(BaseModel):
    """Request body for PATCH /api/v1/central/tenants/{tenant_id}.

    The primary domain is the routing key and cannot be changed here.
    """

    model_config = ConfigDict(extra="forbid")

    subdomain: str | None = Field(None, max_length=255)
    company_name: str | None = Field(None, min_length=1, max_length=255)
    database_host: str | None = Field(None, max_length=255)
    database_port: int | None = Field(None, ge=1, le=65535)
    status: TenantStatus | None = None
    plan: TenantPlan | None = None
    max_users: int | None = None
    max_organizations: int | None = None
    subscription_end: datetime | None = None
    billing_email: EmailStr | None = None
    custom_settings: dict[str, Any] | None = None


class TenantResponse(BaseModel):
    """Tenant as exposed by the API. Connection details stay internal."""

    id: uuid.UUID
    domain: str
    subdomain: str | None
    company_name: str
    status: TenantStatus
    plan: TenantPlan
    max_users: int
    max_organizations: int
    max_storage_mb: int
    subscription_start: datetime | None
    subscription_end: datetime | None
    billing_email: str | None
    custom_settings: dict[str, Any]
    created_at: datetime | None
    updated_at: datetime | None


TenantServiceDep = Annotated[TenantService, Depends(get_tenant_service)]


async def _get_or_404(service: TenantService, tenant_id: uuid.UUID) -> Tenant:
    try:
        return await service.get(tenant_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("", response_model=list[TenantResponse])
async def list_tenants(
    service: TenantServiceDep,
    status_filter: Annotated[TenantStatus | None, Query(alias="status")] = None,
) -> list[Tenant]:
    """List tenants, optionally filtered by stored status."""
    return await service.list_tenants(status_filter)


@router.get("/expired", response_model=list[TenantResponse])
async def list_expired_tenants(service: TenantServiceDep) -> list[Tenant]:
    """List tenants whose subscription has effectively expired."""
    return await service.list_expired()


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    request: CreateTenantRequest,
    service: TenantServiceDep,
    provision: Annotated[bool, Query()] = False,
) -> Tenant:
    """Register a tenant.

    Args:
        request: Tenant fields
        service: Tenant service
        provision: Also create the tenant's dedicated database

    Returns:
        Created tenant

    Raises:
        HTTPException: 422 if a key is taken or the database name is invalid
    """
    fields = request.model_dump(exclude_none=True)
    domain = fields.pop("domain")
    company_name = fields.pop("company_name")

    try:
        if provision:
            return await service.create_with_database(domain, company_name, **fields)
        return await service.create(domain, company_name, **fields)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(tenant_id: uuid.UUID, service: TenantServiceDep) -> Tenant:
    """Get a tenant by ID."""
    return await _get_or_404(service, tenant_id)


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: uuid.UUID,
    request: UpdateTenantRequest,
    service: TenantServiceDep,
) -> Tenant:
    """Update tenant fields. Omitted fields are left unchanged."""
    try:
        return await service.update(tenant_id, **request.model_dump(exclude_unset=True))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tenant(tenant_id: uuid.UUID, service: TenantServiceDep) -> Response:
    """Soft-delete a tenant."""
    if not await service.delete(tenant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{tenant_id}/activate", response_model=TenantResponse)
async def activate_tenant(tenant_id: uuid.UUID, service: TenantServiceDep) -> Tenant:
    await _get_or_404(service, tenant_id)
    return await service.activate(tenant_id)


@router.post("/{tenant_id}/suspend", response_model=TenantResponse)
async def suspend_tenant(tenant_id: uuid.UUID, service: TenantServiceDep) -> Tenant:
    await _get_or_404(service, tenant_id)
    return await service.suspend(tenant_id)


@router.post("/{tenant_id}/expire", response_model=TenantResponse)
async def expire_tenant(tenant_id: uuid.UUID, service: TenantServiceDep) -> Tenant:
    await _get_or_404(service, tenant_id)
    return await service.mark_expired(tenant_id)
