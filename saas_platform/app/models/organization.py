"""Organization models - business hierarchy inside a tenant."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class OrganizationType(str, Enum):
    """Position of an organization in the hierarchy."""

    headquarters = "headquarters"
    branch = "branch"
    subsidiary = "subsidiary"
    division = "division"


class OrganizationStatus(str, Enum):
    """Organization status."""

    active = "active"
    inactive = "inactive"


class Organization(BaseModel):
    """Organization record. `parent_id` links the tree."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    tenant_id: uuid.UUID
    parent_id: uuid.UUID | None = None
    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    description: str | None = None
    type: OrganizationType = OrganizationType.branch
    status: OrganizationStatus = OrganizationStatus.active
    email: str | None = None
    phone: str | None = None
    country: str | None = Field(None, max_length=2)
    currency: str = Field("USD", min_length=3, max_length=3)
    timezone: str = "UTC"
    locale: str = "en"
    settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    def is_active(self) -> bool:
        return self.status == OrganizationStatus.active

    def is_headquarters(self) -> bool:
        return self.type == OrganizationType.headquarters

    def has_parent(self) -> bool:
        return self.parent_id is not None
