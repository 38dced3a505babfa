"""Tenant owner model — the paying account behind one wedding space."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from reflets.models.base import TimestampMixin, new_uuid
from reflets.models.principal import SubscriptionStatus


class TenantOwner(TimestampMixin, SQLModel, table=True):
    __tablename__ = "tenant_owners"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    email: str = Field(max_length=320, unique=True, nullable=False, index=True)
    password_hash: str = Field(nullable=False)
    display_name: str = Field(default="", max_length=255)

    # Billing is handled elsewhere; login only reads this flag
    subscription_status: SubscriptionStatus = Field(default=SubscriptionStatus.TRIAL)
    subscription_end_date: datetime | None = Field(default=None)

    last_login_at: datetime | None = Field(default=None)


# ── Pydantic schemas ─────────────────────────────────────────

class ClientStatusUpdate(SQLModel):
    status: SubscriptionStatus
