"""Guest session model — lighter session keyed by tenant, no refresh token."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from reflets.models.base import new_uuid, utcnow
from reflets.models.principal import AccessType


class GuestSession(SQLModel, table=True):
    __tablename__ = "guest_sessions"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    token_hash: str = Field(nullable=False, unique=True, index=True)

    # Client-generated, survives across guest logins on the same device
    guest_identifier: str = Field(max_length=64, nullable=False)
    guest_name: str | None = Field(default=None, max_length=255)
    access_type: AccessType = Field(default=AccessType.GUEST)

    issued_at: datetime = Field(default_factory=utcnow, nullable=False)
    expires_at: datetime = Field(nullable=False)
    last_used_at: datetime = Field(default_factory=utcnow, nullable=False)
