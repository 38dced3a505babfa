"""Tenant model — one wedding space, owned by exactly one tenant owner."""

import uuid
from datetime import date

from sqlmodel import Field, SQLModel

from reflets.models.base import TimestampMixin, new_uuid
from reflets.models.principal import TenantOwnerPrincipal
from reflets.models.tenant_owner import TenantOwner


class Tenant(TimestampMixin, SQLModel, table=True):
    __tablename__ = "tenants"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    owner_id: uuid.UUID = Field(
        foreign_key="tenant_owners.id", unique=True, nullable=False, index=True,
    )
    name: str = Field(max_length=255, nullable=False)
    slug: str = Field(max_length=100, unique=True, nullable=False, index=True)
    wedding_date: date | None = Field(default=None)

    # Shared access codes handed out to guests; stored upper-case
    guest_code: str = Field(max_length=32, unique=True, nullable=False, index=True)
    admin_code: str = Field(max_length=64, unique=True, nullable=False, index=True)


def owner_principal(owner: TenantOwner, tenant: Tenant) -> TenantOwnerPrincipal:
    """Build the principal exposed for a tenant owner and their tenant."""
    return TenantOwnerPrincipal(
        id=owner.id,
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        tenant_slug=tenant.slug,
        email=owner.email,
        subscription_status=owner.subscription_status,
    )
