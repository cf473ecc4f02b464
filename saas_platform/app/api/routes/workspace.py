"""Tenant-scoped endpoints - run against the bound tenant database."""

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, EmailStr, Field

from saas_platform.app.api.deps import (
    get_current_binding,
    get_organization_service,
    get_tenant_service,
)
from saas_platform.app.models.organization import (
    Organization,
    OrganizationStatus,
    OrganizationType,
)
from saas_platform.app.services.organizations import OrganizationService
from saas_platform.app.services.tenants import TenantService
from saas_platform.app.tenancy.context import TenantBinding

router = APIRouter(prefix="/api/v1", tags=["workspace"])

BindingDep = Annotated[TenantBinding, Depends(get_current_binding)]
OrganizationServiceDep = Annotated[OrganizationService, Depends(get_organization_service)]


class CurrentTenantResponse(BaseModel):
    """Response for GET /api/v1/tenant."""

    id: uuid.UUID
    domain: str
    subdomain: str | None
    company_name: str
    status: str
    plan: str
    features: list[str]
    notice: str | None = None


class CreateOrganizationRequest(BaseModel):
    """Request body for POST /api/v1/organizations."""

    name: str = Field(..., min_length=1, max_length=255)
    code: str | None = Field(None, max_length=50)
    parent_id: uuid.UUID | None = None
    description: str | None = None
    type: OrganizationType = OrganizationType.branch
    status: OrganizationStatus = OrganizationStatus.active
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    country: str | None = Field(None, max_length=2)
    currency: str = Field("USD", min_length=3, max_length=3)
    timezone: str = Field("UTC", max_length=50)
    locale: str = Field("en", min_length=2, max_length=2)
    settings: dict[str, Any] | None = None


class UpdateOrganizationRequest(BaseModel):
    """Request body for PATCH /api/v1/organizations/{organization_id}."""

    name: str | None = Field(None, min_length=1, max_length=255)
    parent_id: uuid.UUID | None = None
    description: str | None = None
    type: OrganizationType | None = None
    status: OrganizationStatus | None = None
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    currency: str | None = Field(None, min_length=3, max_length=3)
    timezone: str | None = Field(None, max_length=50)
    locale: str | None = Field(None, min_length=2, max_length=2)
    settings: dict[str, Any] | None = None


@router.get("/tenant", response_model=CurrentTenantResponse)
async def current_tenant(
    binding: BindingDep,
    tenants: Annotated[TenantService, Depends(get_tenant_service)],
) -> CurrentTenantResponse:
    """Describe the tenant this request is bound to."""
    tenant = binding.tenant
    plan = tenants.plan_for(tenant)
    return CurrentTenantResponse(
        id=tenant.id,
        domain=tenant.domain,
        subdomain=tenant.subdomain,
        company_name=tenant.company_name,
        status=tenant.status.value,
        plan=tenant.plan.value,
        features=plan.features if plan else [],
        notice=binding.advisory,
    )


@router.get("/organizations", response_model=list[Organization])
async def list_organizations(
    binding: BindingDep, service: OrganizationServiceDep
) -> list[Organization]:
    return await service.list_for_tenant(binding.tenant.id)


@router.post("/organizations", response_model=Organization, status_code=status.HTTP_201_CREATED)
async def create_organization(
    request: CreateOrganizationRequest,
    binding: BindingDep,
    service: OrganizationServiceDep,
) -> Organization:
    """Create an organization in the current tenant.

    Raises:
        HTTPException: 422 on a missing parent, taken code or reached limit
    """
    fields = request.model_dump(exclude_none=True)
    name = fields.pop("name")
    try:
        return await service.create(binding.tenant.id, name, tenant=binding.tenant, **fields)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.get("/organizations/roots", response_model=list[Organization])
async def root_organizations(
    binding: BindingDep, service: OrganizationServiceDep
) -> list[Organization]:
    return await service.roots(binding.tenant.id)


@router.get("/organizations/active", response_model=list[Organization])
async def active_organizations(
    binding: BindingDep, service: OrganizationServiceDep
) -> list[Organization]:
    return await service.active(binding.tenant.id)


@router.get("/organizations/{organization_id}", response_model=Organization)
async def get_organization(
    organization_id: uuid.UUID, service: OrganizationServiceDep
) -> Organization:
    try:
        return await service.get(organization_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/organizations/{organization_id}/children", response_model=list[Organization])
async def organization_children(
    organization_id: uuid.UUID, service: OrganizationServiceDep
) -> list[Organization]:
    return await service.children(organization_id)


@router.patch("/organizations/{organization_id}", response_model=Organization)
async def update_organization(
    organization_id: uuid.UUID,
    request: UpdateOrganizationRequest,
    service: OrganizationServiceDep,
) -> Organization:
    try:
        return await service.update(organization_id, **request.model_dump(exclude_unset=True))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.delete("/organizations/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    organization_id: uuid.UUID, service: OrganizationServiceDep
) -> Response:
    try:
        deleted = await service.delete(organization_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
