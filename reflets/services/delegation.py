"""Delegation authority — superuser impersonation grants for one tenant.

A grant is a short-lived, limited-use token. Consuming it is a single
conditional UPDATE, so concurrent attempts on a single-use grant succeed
at most once.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from reflets.core.errors import AuthError, AuthResult
from reflets.core.security import DELEGATION_TOKEN_BYTES, generate_token, hash_token
from reflets.models.audit_log import AuditAction
from reflets.models.base import utcnow
from reflets.models.delegation_grant import DEFAULT_MAX_USES, DelegationGrant, DelegationIssued
from reflets.models.principal import ActorKind, TenantOwnerPrincipal
from reflets.models.superuser import Superuser
from reflets.models.tenant import Tenant, owner_principal
from reflets.models.tenant_owner import TenantOwner
from reflets.services.audit import record_event

logger = logging.getLogger(__name__)

# Shorter than every session TTL
DELEGATION_TTL = timedelta(minutes=15)


@dataclass
class CleanupReport:
    deleted_count: int


async def issue_delegation(
    session: AsyncSession,
    issuer_id: uuid.UUID | None,
    target_tenant_id: uuid.UUID | None,
    max_uses: int = DEFAULT_MAX_USES,
) -> AuthResult[DelegationIssued]:
    """Mint a grant letting ``issuer_id`` act as the owner of ``target_tenant_id``.

    The caller has already authenticated the issuer's superuser session.
    """
    if not issuer_id or not target_tenant_id:
        await _issue_rejected(session, issuer_id, target_tenant_id, "missing_ids")
        return AuthResult.failure(AuthError.TARGET_NOT_FOUND)
    if max_uses < 1:
        raise ValueError("max_uses must be at least 1")

    try:
        issuer = await session.get(Superuser, issuer_id)
        if issuer is None or not issuer.is_active:
            await _issue_rejected(session, issuer_id, target_tenant_id, "issuer_unavailable")
            return AuthResult.failure(AuthError.TARGET_NOT_FOUND)

        tenant = await session.get(Tenant, target_tenant_id)
        if tenant is None:
            await _issue_rejected(session, issuer_id, target_tenant_id, "tenant_missing")
            return AuthResult.failure(AuthError.TARGET_NOT_FOUND)

        token = generate_token(DELEGATION_TOKEN_BYTES)
        grant = DelegationGrant(
            issuer_id=issuer.id,
            target_tenant_id=tenant.id,
            token_hash=hash_token(token),
            expires_at=utcnow() + DELEGATION_TTL,
            max_uses=max_uses,
        )
        session.add(grant)
        await session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to issue delegation grant for tenant %s", target_tenant_id)
        await session.rollback()
        await _issue_rejected(session, issuer_id, target_tenant_id, "backing_store_failure")
        return AuthResult.failure(AuthError.BACKING_STORE_FAILURE)

    await record_event(
        session, AuditAction.DELEGATION_ISSUED, ActorKind.GOD, issuer.id,
        details={"grant_id": grant.id, "tenant_id": tenant.id, "max_uses": max_uses},
    )
    return AuthResult.success(DelegationIssued(token=token, expires_at=grant.expires_at))


async def _issue_rejected(
    session: AsyncSession,
    issuer_id: uuid.UUID | None,
    target_tenant_id: uuid.UUID | None,
    reason: str,
) -> None:
    await record_event(
        session, AuditAction.DELEGATION_ISSUE_REJECTED, ActorKind.GOD, issuer_id or None,
        details={"tenant_id": target_tenant_id, "reason": reason},
    )


async def verify_delegation(
    session: AsyncSession, token: str
) -> AuthResult[TenantOwnerPrincipal]:
    """Consume one use of a grant and return the target tenant owner.

    Absent, expired and used-up grants are all ``GRANT_EXHAUSTED``.
    """
    if not token:
        await _reject(session, None, "missing_token")
        return AuthResult.failure(AuthError.GRANT_EXHAUSTED)

    now = utcnow()
    try:
        result = await session.execute(
            select(DelegationGrant)
            .where(DelegationGrant.token_hash == hash_token(token))
            .execution_options(populate_existing=True)
        )
        grant = result.scalar_one_or_none()
        if grant is None or not grant.is_consumable(now):
            await _reject(session, grant, "grant_unusable")
            return AuthResult.failure(AuthError.GRANT_EXHAUSTED)

        principal = await _target_principal(session, grant.target_tenant_id)
        if principal is None:
            await _reject(session, grant, "target_missing")
            return AuthResult.failure(AuthError.TARGET_NOT_FOUND)

        # Increment only while uses remain; a concurrent consumer may have won
        stmt = (
            update(DelegationGrant)
            .where(
                DelegationGrant.id == grant.id,
                DelegationGrant.used_count < DelegationGrant.max_uses,
                DelegationGrant.expires_at > now,
            )
            .values(used_count=DelegationGrant.used_count + 1, used_at=now)
            .execution_options(synchronize_session=False)
        )
        consumed = await session.execute(stmt)
        await session.commit()
    except SQLAlchemyError:
        logger.exception("Delegation grant verification failed")
        await session.rollback()
        await _reject(session, None, "backing_store_failure")
        return AuthResult.failure(AuthError.BACKING_STORE_FAILURE)

    if consumed.rowcount != 1:
        await _reject(session, grant, "grant_exhausted")
        return AuthResult.failure(AuthError.GRANT_EXHAUSTED)

    await record_event(
        session, AuditAction.DELEGATION_USED, ActorKind.GOD, grant.issuer_id,
        details={"grant_id": grant.id, "tenant_id": grant.target_tenant_id},
    )
    return AuthResult.success(principal)


async def _target_principal(
    session: AsyncSession, tenant_id: uuid.UUID
) -> TenantOwnerPrincipal | None:
    tenant = await session.get(Tenant, tenant_id)
    if tenant is None:
        return None
    owner = await session.get(TenantOwner, tenant.owner_id)
    if owner is None:
        return None
    return owner_principal(owner, tenant)


async def _reject(session: AsyncSession, grant: DelegationGrant | None, reason: str) -> None:
    await record_event(
        session, AuditAction.DELEGATION_REJECTED, ActorKind.GOD,
        grant.issuer_id if grant is not None else None,
        details={"grant_id": grant.id if grant is not None else None, "reason": reason},
    )


# ── Inspection ────────────────────────────────────────────────

async def is_delegation_valid(session: AsyncSession, grant_id: uuid.UUID) -> bool:
    """True while the grant is unexpired and has uses left. Read-only."""
    try:
        grant = await session.get(DelegationGrant, grant_id, populate_existing=True)
    except SQLAlchemyError:
        logger.exception("Delegation grant lookup failed for %s", grant_id)
        await session.rollback()
        return False
    return grant is not None and grant.is_consumable(utcnow())


async def get_delegation_expiration(session: AsyncSession, token: str) -> datetime | None:
    """Expiry of the grant behind ``token``, or ``None`` if there is none."""
    try:
        result = await session.execute(
            select(DelegationGrant.expires_at).where(
                DelegationGrant.token_hash == hash_token(token)
            )
        )
    except SQLAlchemyError:
        logger.exception("Delegation grant expiry lookup failed")
        await session.rollback()
        return None
    return result.scalar_one_or_none()


# ── Cleanup sweep ─────────────────────────────────────────────

async def cleanup_expired_delegations(session: AsyncSession) -> AuthResult[CleanupReport]:
    """Delete every grant past its expiry in one statement.

    Safe to repeat and to run alongside issue/verify: only grants that
    already fail verification are removed.
    """
    now = utcnow()
    try:
        stmt = (
            delete(DelegationGrant)
            .where(DelegationGrant.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        await session.commit()
    except SQLAlchemyError:
        logger.exception("Delegation cleanup sweep failed")
        await session.rollback()
        return AuthResult.failure(AuthError.BACKING_STORE_FAILURE)

    deleted = result.rowcount or 0
    if deleted > 0:
        logger.info("Delegation cleanup: deleted %d expired grant(s)", deleted)
        await record_event(
            session, AuditAction.DELEGATION_CLEANUP, ActorKind.SYSTEM,
            details={"deleted_count": deleted, "cleanup_time": now},
        )
    return AuthResult.success(CleanupReport(deleted_count=deleted))
