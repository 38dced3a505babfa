"""Import all models so SQLModel.metadata picks them up."""

from reflets.models.audit_log import AuditAction, AuditEntry
from reflets.models.delegation_grant import DelegationCreate, DelegationGrant, DelegationIssued
from reflets.models.guest_session import GuestSession
from reflets.models.principal import (
    AccessType,
    ActorKind,
    GuestPrincipal,
    Principal,
    PrincipalKind,
    SubscriptionStatus,
    SuperuserPrincipal,
    TenantOwnerPrincipal,
)
from reflets.models.session import AuthSession
from reflets.models.superuser import Superuser
from reflets.models.tenant import Tenant
from reflets.models.tenant_owner import ClientStatusUpdate, TenantOwner

__all__ = [
    "AccessType",
    "ActorKind",
    "AuditAction",
    "AuditEntry",
    "AuthSession",
    "ClientStatusUpdate",
    "DelegationCreate",
    "DelegationGrant",
    "DelegationIssued",
    "GuestPrincipal",
    "GuestSession",
    "Principal",
    "PrincipalKind",
    "SubscriptionStatus",
    "Superuser",
    "SuperuserPrincipal",
    "Tenant",
    "TenantOwner",
    "TenantOwnerPrincipal",
]
