"""Superuser administration of tenant owners: status changes and deletion."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from reflets.core.errors import AuthError, AuthResult
from reflets.models.audit_log import AuditAction
from reflets.models.base import utcnow
from reflets.models.guest_session import GuestSession
from reflets.models.principal import ActorKind, SubscriptionStatus, TenantOwnerPrincipal
from reflets.models.tenant import Tenant, owner_principal
from reflets.models.tenant_owner import TenantOwner
from reflets.services.audit import record_event

logger = logging.getLogger(__name__)


async def update_client_status(
    session: AsyncSession,
    actor_id: uuid.UUID,
    client_id: uuid.UUID,
    status: SubscriptionStatus,
) -> AuthResult[TenantOwnerPrincipal]:
    """Set a tenant owner's subscription status.

    Moving an owner to ``expired`` blocks new owner and guest logins;
    sessions already issued stay valid until they expire.
    """
    try:
        owner = await session.get(TenantOwner, client_id)
        if owner is None:
            return AuthResult.failure(AuthError.TARGET_NOT_FOUND)
        result = await session.execute(select(Tenant).where(Tenant.owner_id == owner.id))
        tenant = result.scalar_one_or_none()
        if tenant is None:
            return AuthResult.failure(AuthError.TARGET_NOT_FOUND)

        previous = owner.subscription_status
        owner.subscription_status = status
        owner.updated_at = utcnow()
        session.add(owner)
        await session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to update status for client %s", client_id)
        await session.rollback()
        return AuthResult.failure(AuthError.BACKING_STORE_FAILURE)

    await record_event(
        session, AuditAction.CLIENT_STATUS_CHANGED, ActorKind.GOD, actor_id,
        details={"client_id": client_id, "old_status": previous, "new_status": status},
    )
    return AuthResult.success(owner_principal(owner, tenant))


async def delete_client(
    session: AsyncSession, actor_id: uuid.UUID, client_id: uuid.UUID
) -> AuthResult[None]:
    """Delete a tenant owner with their tenant and its guest sessions.

    Owner sessions are left in place; they stop verifying once the owner
    row is gone.
    """
    try:
        owner = await session.get(TenantOwner, client_id)
        if owner is None:
            return AuthResult.failure(AuthError.TARGET_NOT_FOUND)

        result = await session.execute(select(Tenant).where(Tenant.owner_id == owner.id))
        tenant = result.scalar_one_or_none()
        tenant_id = tenant.id if tenant is not None else None
        if tenant is not None:
            await session.execute(
                delete(GuestSession)
                .where(GuestSession.tenant_id == tenant.id)
                .execution_options(synchronize_session=False)
            )
            await session.delete(tenant)
            await session.flush()
        await session.delete(owner)
        await session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to delete client %s", client_id)
        await session.rollback()
        return AuthResult.failure(AuthError.BACKING_STORE_FAILURE)

    await record_event(
        session, AuditAction.CLIENT_DELETED, ActorKind.GOD, actor_id,
        details={"client_id": client_id, "tenant_id": tenant_id},
    )
    return AuthResult.success(None)
