"""Auth session model — an issued superuser or tenant-owner credential."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from reflets.models.base import new_uuid, utcnow
from reflets.models.principal import PrincipalKind


class AuthSession(SQLModel, table=True):
    __tablename__ = "sessions"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)

    # Superuser id or tenant owner id, depending on principal_kind
    principal_id: uuid.UUID = Field(nullable=False, index=True)
    principal_kind: PrincipalKind = Field(nullable=False, index=True)

    # SHA-256 digests; raw values are handed to the caller only once
    token_hash: str = Field(nullable=False, unique=True, index=True)
    refresh_token_hash: str | None = Field(default=None, unique=True, index=True)

    issued_at: datetime = Field(default_factory=utcnow, nullable=False)
    expires_at: datetime = Field(nullable=False, index=True)
    refresh_expires_at: datetime | None = Field(default=None)
    last_used_at: datetime = Field(default_factory=utcnow, nullable=False)

    revoked_at: datetime | None = Field(default=None)
    revoked_reason: str | None = Field(default=None, max_length=64)

    def is_valid(self, now: datetime) -> bool:
        return self.revoked_at is None and now < self.expires_at
