"""Superuser model — platform operators with access to every tenant."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from reflets.models.base import TimestampMixin, new_uuid
from reflets.models.principal import SuperuserPrincipal


class Superuser(TimestampMixin, SQLModel, table=True):
    __tablename__ = "superusers"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    username: str = Field(max_length=150, unique=True, nullable=False, index=True)
    password_hash: str = Field(nullable=False)
    email: str | None = Field(default=None, max_length=320)
    is_active: bool = Field(default=True)
    last_login_at: datetime | None = Field(default=None)

    def to_principal(self) -> SuperuserPrincipal:
        return SuperuserPrincipal(
            id=self.id,
            username=self.username,
            email=self.email,
            is_active=self.is_active,
        )
