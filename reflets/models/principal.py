"""Principal kinds and the resolved-principal union returned to callers."""

import uuid
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class PrincipalKind(StrEnum):
    GOD = "god"
    CLIENT = "client"
    GUEST = "guest"


class ActorKind(StrEnum):
    """Who performed an audited action. ``system`` covers scheduled jobs."""
    GOD = "god"
    CLIENT = "client"
    GUEST = "guest"
    SYSTEM = "system"


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    TRIAL = "trial"
    EXPIRED = "expired"


# Statuses allowed to open owner or guest sessions
ELIGIBLE_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL})


class AccessType(StrEnum):
    GUEST = "guest"
    ADMIN = "admin"


class SuperuserPrincipal(BaseModel):
    kind: Literal["god"] = "god"
    id: uuid.UUID
    username: str
    email: str | None = None
    is_active: bool = True


class TenantOwnerPrincipal(BaseModel):
    kind: Literal["client"] = "client"
    id: uuid.UUID  # owner account id
    tenant_id: uuid.UUID
    tenant_name: str
    tenant_slug: str
    email: str
    subscription_status: SubscriptionStatus


class GuestPrincipal(BaseModel):
    kind: Literal["guest"] = "guest"
    tenant_id: uuid.UUID
    tenant_slug: str
    guest_identifier: str
    display_name: str | None = None
    access_type: AccessType


Principal = Annotated[
    SuperuserPrincipal | TenantOwnerPrincipal | GuestPrincipal,
    Field(discriminator="kind"),
]
