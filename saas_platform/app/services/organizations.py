"""Organization hierarchy management inside a tenant database."""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from saas_platform.app.db.repositories import OrganizationRepository
from saas_platform.app.models.organization import Organization, OrganizationStatus
from saas_platform.app.models.tenant import Tenant

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "parent_id",
        "name",
        "code",
        "description",
        "type",
        "status",
        "email",
        "phone",
        "country",
        "currency",
        "timezone",
        "locale",
        "settings",
    }
)


def generate_code(name: str) -> str:
    """Organization code: first three letters of the name plus a unique suffix."""
    prefix = "".join(ch for ch in name if ch.isalnum())[:3].upper() or "ORG"
    return f"{prefix}{uuid.uuid4().hex[:8].upper()}"


class OrganizationService:
    """Organization CRUD with hierarchy invariants.

    - A parent must exist and belong to the same tenant
    - An organization can never become its own ancestor
    - Organizations with children cannot be deleted
    """

    def __init__(
        self,
        repository: OrganizationRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def get(self, organization_id: uuid.UUID) -> Organization:
        """Get organization by ID.

        Raises:
            LookupError: If the organization does not exist
        """
        organization = await self._repository.get(organization_id)
        if organization is None:
            raise LookupError(f"Organization not found: {organization_id}")
        return organization

    async def find_by_code(self, code: str) -> Organization | None:
        return await self._repository.find_by_code(code)

    async def create(
        self,
        tenant_id: uuid.UUID,
        name: str,
        *,
        tenant: Tenant | None = None,
        **fields: Any,
    ) -> Organization:
        """Create an organization.

        Args:
            tenant_id: Owning tenant
            name: Organization name
            tenant: Tenant snapshot; when given its organization limit is enforced
            **fields: Remaining Organization fields

        Returns:
            The stored organization

        Raises:
            ValueError: Parent missing, limit reached or code taken
        """
        if tenant is not None:
            existing = await self._repository.list_for_tenant(tenant_id)
            if not tenant.can_add_organizations(len(existing)):
                raise ValueError(
                    f"Organization limit reached for tenant ({tenant.max_organizations})"
                )

        parent_id = fields.get("parent_id")
        if parent_id is not None:
            parent = await self._repository.get(parent_id)
            if parent is None or parent.tenant_id != tenant_id:
                raise ValueError("Parent organization not found")

        code = fields.pop("code", None) or generate_code(name)
        organization = Organization(
            tenant_id=tenant_id,
            name=name,
            code=code,
            created_at=self._clock(),
            updated_at=self._clock(),
            **fields,
        )
        organization = await self._repository.add(organization)

        logger.info(
            "Organization created",
            extra={
                "structured": {
                    "organization_id": str(organization.id),
                    "name": organization.name,
                    "tenant_id": str(organization.tenant_id),
                }
            },
        )
        return organization

    async def update(self, organization_id: uuid.UUID, **changes: Any) -> Organization:
        """Apply field changes.

        Raises:
            LookupError: If the organization does not exist
            ValueError: Unknown field, missing parent or a hierarchy cycle
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        current = await self.get(organization_id)

        if "parent_id" in changes and changes["parent_id"] is not None:
            await self._check_parent(current, changes["parent_id"])

        updated = Organization.model_validate(
            {**current.model_dump(), **changes, "updated_at": self._clock()}
        )
        saved = await self._repository.save(updated)
        logger.info("Organization %s updated", organization_id)
        return saved

    async def delete(self, organization_id: uuid.UUID) -> bool:
        """Soft-delete an organization.

        Raises:
            ValueError: If the organization still has children
        """
        if await self._repository.children(organization_id):
            raise ValueError("Cannot delete organization with child organizations")
        return await self._repository.soft_delete(organization_id, self._clock())

    async def list_for_tenant(self, tenant_id: uuid.UUID) -> list[Organization]:
        return await self._repository.list_for_tenant(tenant_id)

    async def roots(self, tenant_id: uuid.UUID) -> list[Organization]:
        """Organizations without a parent."""
        return [o for o in await self._repository.list_for_tenant(tenant_id) if not o.has_parent()]

    async def children(self, parent_id: uuid.UUID) -> list[Organization]:
        return await self._repository.children(parent_id)

    async def active(self, tenant_id: uuid.UUID) -> list[Organization]:
        return [
            o
            for o in await self._repository.list_for_tenant(tenant_id)
            if o.status == OrganizationStatus.active
        ]

    async def _check_parent(self, organization: Organization, parent_id: uuid.UUID) -> None:
        if parent_id == organization.id:
            raise ValueError("Organization cannot be its own parent")

        parent = await self._repository.get(parent_id)
        if parent is None or parent.tenant_id != organization.tenant_id:
            raise ValueError("Parent organization not found")

        # Walk up from the new parent; meeting ourselves means a cycle
        seen: set[uuid.UUID] = set()
        cursor: Organization | None = parent
        while cursor is not None and cursor.parent_id is not None:
            if cursor.parent_id == organization.id:
                raise ValueError("Organization cannot be moved under its own descendant")
            if cursor.parent_id in seen:
                break
            seen.add(cursor.parent_id)
            cursor = await self._repository.get(cursor.parent_id)
