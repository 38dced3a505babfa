"""Audit log model — append-only; rows are never updated or deleted."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from reflets.models.base import new_uuid, utcnow
from reflets.models.principal import ActorKind


class AuditAction(StrEnum):
    GOD_LOGIN_SUCCESS = "god_login_success"
    GOD_LOGIN_FAILED = "god_login_failed"
    GOD_LOGOUT = "god_logout"
    CLIENT_LOGIN_SUCCESS = "client_login_success"
    CLIENT_LOGIN_FAILED = "client_login_failed"
    CLIENT_LOGOUT = "client_logout"
    CLIENT_TOKEN_REFRESHED = "client_token_refreshed"
    CLIENT_TOKEN_REFRESH_FAILED = "client_token_refresh_failed"
    GUEST_LOGIN = "guest_login"
    GUEST_LOGIN_FAILED = "guest_login_failed"
    GUEST_LOGOUT = "guest_logout"
    DELEGATION_ISSUED = "delegation_issued"
    DELEGATION_ISSUE_REJECTED = "delegation_issue_rejected"
    DELEGATION_USED = "delegation_used"
    DELEGATION_REJECTED = "delegation_rejected"
    DELEGATION_CLEANUP = "delegation_cleanup"
    CLIENT_STATUS_CHANGED = "client_status_changed"
    CLIENT_DELETED = "client_deleted"


class AuditEntry(SQLModel, table=True):
    __tablename__ = "audit_log"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    action: str = Field(max_length=64, nullable=False, index=True)
    actor_kind: ActorKind = Field(nullable=False)
    actor_id: uuid.UUID | None = Field(default=None, index=True)

    # JSON object stored as text
    details: str = Field(default="{}", sa_column=Column(Text, nullable=False, server_default="{}"))

    created_at: datetime = Field(default_factory=utcnow, nullable=False, index=True)
