"""Delegation grant model — short-lived impersonation token for a superuser."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from reflets.models.base import new_uuid, utcnow

DEFAULT_MAX_USES = 1


class DelegationGrant(SQLModel, table=True):
    __tablename__ = "delegation_grants"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    issuer_id: uuid.UUID = Field(foreign_key="superusers.id", nullable=False, index=True)
    target_tenant_id: uuid.UUID = Field(nullable=False, index=True)

    token_hash: str = Field(nullable=False, unique=True, index=True)

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    expires_at: datetime = Field(nullable=False, index=True)

    used_count: int = Field(default=0, nullable=False)
    max_uses: int = Field(default=DEFAULT_MAX_USES, nullable=False)
    used_at: datetime | None = Field(default=None)

    def is_consumable(self, now: datetime) -> bool:
        return now < self.expires_at and self.used_count < self.max_uses


# ── Pydantic schemas ─────────────────────────────────────────

class DelegationCreate(SQLModel):
    target_tenant_id: uuid.UUID
    max_uses: int = Field(default=DEFAULT_MAX_USES, ge=1, le=10)


class DelegationIssued(SQLModel):
    """Returned exactly once at issue time — includes the raw token."""
    token: str
    expires_at: datetime
