"""Session authority — login, verification, refresh and logout.

Three principal kinds share this module: superusers (``god``) and tenant
owners (``client``) hold rows in ``sessions``; guests hold lighter rows in
``guest_sessions``. The authority keeps no state between calls: callers
hold the raw token and pass it back explicitly.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from reflets.core.errors import AuthError, AuthResult
from reflets.core.security import (
    GUEST_IDENTIFIER_BYTES,
    generate_token,
    hash_token,
)
from reflets.models.audit_log import AuditAction
from reflets.models.base import utcnow
from reflets.models.guest_session import GuestSession
from reflets.models.principal import (
    ELIGIBLE_STATUSES,
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
from reflets.models.tenant import Tenant, owner_principal
from reflets.models.tenant_owner import TenantOwner
from reflets.services.audit import record_event
from reflets.services.credentials import verify_credentials

logger = logging.getLogger(__name__)

# Fixed per kind; not configurable
SESSION_TTL: dict[PrincipalKind, timedelta] = {
    PrincipalKind.GOD: timedelta(hours=24),
    PrincipalKind.CLIENT: timedelta(days=7),
    PrincipalKind.GUEST: timedelta(hours=24),
}
REFRESH_TTL = timedelta(days=30)

_LOGIN_AUDIT: dict[PrincipalKind, tuple[AuditAction, AuditAction]] = {
    PrincipalKind.GOD: (AuditAction.GOD_LOGIN_SUCCESS, AuditAction.GOD_LOGIN_FAILED),
    PrincipalKind.CLIENT: (AuditAction.CLIENT_LOGIN_SUCCESS, AuditAction.CLIENT_LOGIN_FAILED),
}

_LOGOUT_AUDIT: dict[PrincipalKind, AuditAction] = {
    PrincipalKind.GOD: AuditAction.GOD_LOGOUT,
    PrincipalKind.CLIENT: AuditAction.CLIENT_LOGOUT,
}


@dataclass
class LoginSuccess:
    principal: SuperuserPrincipal | TenantOwnerPrincipal
    token: str
    refresh_token: str | None = None


@dataclass
class GuestLoginSuccess:
    principal: GuestPrincipal
    access_type: AccessType
    token: str


@dataclass
class RefreshSuccess:
    token: str
    expires_at: datetime


# ── Login ─────────────────────────────────────────────────────

async def login(
    session: AsyncSession,
    kind: PrincipalKind,
    identifier: str,
    secret: str,
) -> AuthResult[LoginSuccess]:
    """Verify a superuser or tenant-owner secret and open a session.

    Tenant owners additionally need an ``active`` or ``trial``
    subscription; a lapsed ``subscription_end_date`` flips the owner to
    ``expired`` before the check.
    """
    if kind not in _LOGIN_AUDIT:
        raise ValueError(f"Password login is not available for {kind} principals")
    success_action, failed_action = _LOGIN_AUDIT[kind]
    actor_kind = ActorKind(kind)

    if not identifier or not secret:
        await record_event(
            session, failed_action, actor_kind,
            details={"identifier": identifier, "reason": "missing_credentials"},
        )
        return AuthResult.failure(AuthError.INVALID_CREDENTIALS)

    account = await verify_credentials(session, kind, identifier, secret)
    if account is None:
        await record_event(
            session, failed_action, actor_kind,
            details={"identifier": identifier, "reason": "invalid_credentials"},
        )
        return AuthResult.failure(AuthError.INVALID_CREDENTIALS)

    account_id = account.id
    now = utcnow()
    try:
        if isinstance(account, TenantOwner):
            principal, reason = await _eligible_owner(session, account, now)
            if principal is None:
                await record_event(
                    session, failed_action, actor_kind, account.id,
                    details={"identifier": identifier, "reason": reason},
                )
                return AuthResult.failure(AuthError.ACCOUNT_NOT_ELIGIBLE)
        else:
            principal = account.to_principal()

        token = generate_token()
        refresh_token = generate_token() if kind == PrincipalKind.CLIENT else None
        session.add(
            AuthSession(
                principal_id=account.id,
                principal_kind=kind,
                token_hash=hash_token(token),
                refresh_token_hash=hash_token(refresh_token) if refresh_token else None,
                issued_at=now,
                expires_at=now + SESSION_TTL[kind],
                refresh_expires_at=now + REFRESH_TTL if refresh_token else None,
                last_used_at=now,
            )
        )
        account.last_login_at = now
        session.add(account)
        await session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to open %s session", kind)
        await session.rollback()
        await record_event(
            session, failed_action, actor_kind, account_id,
            details={"identifier": identifier, "reason": "backing_store_failure"},
        )
        return AuthResult.failure(AuthError.BACKING_STORE_FAILURE)

    await record_event(
        session, success_action, actor_kind, account.id,
        details={"identifier": identifier},
    )
    return AuthResult.success(
        LoginSuccess(principal=principal, token=token, refresh_token=refresh_token)
    )


async def _eligible_owner(
    session: AsyncSession, owner: TenantOwner, now: datetime
) -> tuple[TenantOwnerPrincipal | None, str | None]:
    """Return the owner's principal, or ``None`` and the reason it is blocked."""
    if (
        owner.subscription_end_date is not None
        and owner.subscription_end_date < now
        and owner.subscription_status != SubscriptionStatus.EXPIRED
    ):
        owner.subscription_status = SubscriptionStatus.EXPIRED
        owner.updated_at = now
        session.add(owner)
        await session.commit()
        return None, "subscription_lapsed"

    if owner.subscription_status not in ELIGIBLE_STATUSES:
        return None, f"subscription_{owner.subscription_status}"

    tenant = await _tenant_for_owner(session, owner.id)
    if tenant is None:
        return None, "tenant_missing"
    return owner_principal(owner, tenant), None


async def _tenant_for_owner(session: AsyncSession, owner_id: uuid.UUID) -> Tenant | None:
    result = await session.execute(select(Tenant).where(Tenant.owner_id == owner_id))
    return result.scalar_one_or_none()


# ── Guest login ───────────────────────────────────────────────

async def guest_login(
    session: AsyncSession,
    code: str,
    display_name: str | None = None,
    guest_identifier: str | None = None,
) -> AuthResult[GuestLoginSuccess]:
    """Match a shared access code against a tenant's guest and admin slots.

    The matched slot decides ``access_type``; feature gating based on it
    happens downstream.
    """
    normalized = (code or "").strip().upper()
    if not normalized:
        await record_event(
            session, AuditAction.GUEST_LOGIN_FAILED, ActorKind.GUEST,
            details={"reason": "missing_code"},
        )
        return AuthResult.failure(AuthError.INVALID_CREDENTIALS)

    try:
        stmt = select(Tenant).where(
            or_(Tenant.admin_code == normalized, Tenant.guest_code == normalized)
        )
        result = await session.execute(stmt)
        matches = list(result.scalars().all())
        if not matches:
            await record_event(
                session, AuditAction.GUEST_LOGIN_FAILED, ActorKind.GUEST,
                details={"reason": "invalid_code"},
            )
            return AuthResult.failure(AuthError.INVALID_CREDENTIALS)

        # Codes are unique per column only; a code shared across tenants
        # matches neither of them
        if len({t.id for t in matches}) > 1:
            await record_event(
                session, AuditAction.GUEST_LOGIN_FAILED, ActorKind.GUEST,
                details={"tenant_ids": [t.id for t in matches], "reason": "ambiguous_code"},
            )
            return AuthResult.failure(AuthError.INVALID_CREDENTIALS)

        # Within one tenant the admin slot wins
        tenant = matches[0]
        access_type = AccessType.ADMIN if tenant.admin_code == normalized else AccessType.GUEST

        owner = await session.get(TenantOwner, tenant.owner_id)
        if owner is None or owner.subscription_status not in ELIGIBLE_STATUSES:
            await record_event(
                session, AuditAction.GUEST_LOGIN_FAILED, ActorKind.GUEST,
                details={"tenant_id": tenant.id, "reason": "tenant_unavailable"},
            )
            return AuthResult.failure(AuthError.ACCOUNT_NOT_ELIGIBLE)

        now = utcnow()
        token = generate_token()
        identifier = guest_identifier or generate_token(GUEST_IDENTIFIER_BYTES)
        session.add(
            GuestSession(
                tenant_id=tenant.id,
                token_hash=hash_token(token),
                guest_identifier=identifier,
                guest_name=display_name or None,
                access_type=access_type,
                issued_at=now,
                expires_at=now + SESSION_TTL[PrincipalKind.GUEST],
                last_used_at=now,
            )
        )
        await session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to open guest session")
        await session.rollback()
        await record_event(
            session, AuditAction.GUEST_LOGIN_FAILED, ActorKind.GUEST,
            details={"reason": "backing_store_failure"},
        )
        return AuthResult.failure(AuthError.BACKING_STORE_FAILURE)

    await record_event(
        session, AuditAction.GUEST_LOGIN, ActorKind.GUEST,
        details={
            "tenant_id": tenant.id,
            "access_type": access_type,
            "guest_name": display_name,
        },
    )
    principal = GuestPrincipal(
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        guest_identifier=identifier,
        display_name=display_name or None,
        access_type=access_type,
    )
    return AuthResult.success(
        GuestLoginSuccess(principal=principal, access_type=access_type, token=token)
    )


# ── Verification ──────────────────────────────────────────────

async def verify_session(
    session: AsyncSession, token: str, kind: PrincipalKind
) -> AuthResult[Principal]:
    """Resolve a raw session token of the given kind to its principal.

    Absent, revoked, and expired sessions are all ``SESSION_NOT_FOUND``.
    """
    if not token:
        return AuthResult.failure(AuthError.SESSION_NOT_FOUND)
    if kind == PrincipalKind.GUEST:
        return await _verify_guest_session(session, token)

    now = utcnow()
    try:
        stmt = select(AuthSession).where(
            AuthSession.token_hash == hash_token(token),
            AuthSession.principal_kind == kind,
        )
        result = await session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None or not row.is_valid(now):
            return AuthResult.failure(AuthError.SESSION_NOT_FOUND)
        principal = await _resolve_principal(session, row)
    except SQLAlchemyError:
        logger.exception("Session lookup failed")
        await session.rollback()
        return AuthResult.failure(AuthError.BACKING_STORE_FAILURE)

    if principal is None:
        return AuthResult.failure(AuthError.SESSION_NOT_FOUND)

    row.last_used_at = now
    await _touch(session, row)
    return AuthResult.success(principal)


async def _resolve_principal(
    session: AsyncSession, row: AuthSession
) -> SuperuserPrincipal | TenantOwnerPrincipal | None:
    if row.principal_kind == PrincipalKind.GOD:
        admin = await session.get(Superuser, row.principal_id)
        if admin is None or not admin.is_active:
            return None
        return admin.to_principal()

    owner = await session.get(TenantOwner, row.principal_id)
    if owner is None:
        return None
    tenant = await _tenant_for_owner(session, owner.id)
    if tenant is None:
        return None
    return owner_principal(owner, tenant)


async def _verify_guest_session(session: AsyncSession, token: str) -> AuthResult[Principal]:
    now = utcnow()
    try:
        stmt = select(GuestSession).where(
            GuestSession.token_hash == hash_token(token),
            GuestSession.expires_at > now,
        )
        result = await session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            return AuthResult.failure(AuthError.SESSION_NOT_FOUND)
        tenant = await session.get(Tenant, row.tenant_id)
    except SQLAlchemyError:
        logger.exception("Guest session lookup failed")
        await session.rollback()
        return AuthResult.failure(AuthError.BACKING_STORE_FAILURE)

    if tenant is None:
        return AuthResult.failure(AuthError.SESSION_NOT_FOUND)

    principal = GuestPrincipal(
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        guest_identifier=row.guest_identifier,
        display_name=row.guest_name,
        access_type=row.access_type,
    )
    row.last_used_at = now
    await _touch(session, row)
    return AuthResult.success(principal)


async def _touch(session: AsyncSession, row: AuthSession | GuestSession) -> None:
    """Persist ``last_used_at``. A failure here never fails verification."""
    try:
        session.add(row)
        await session.commit()
    except SQLAlchemyError:
        logger.warning("Could not update last_used_at for session %s", row.id)
        await session.rollback()


# ── Refresh ───────────────────────────────────────────────────

async def refresh(session: AsyncSession, refresh_token: str) -> AuthResult[RefreshSuccess]:
    """Mint a new access token for a tenant-owner session.

    The refresh token itself is kept as-is; see DESIGN.md. A session whose
    owner or tenant no longer exists cannot be refreshed.
    """
    if not refresh_token:
        await _refresh_failed(session, None, "missing_refresh_token")
        return AuthResult.failure(AuthError.SESSION_NOT_FOUND)

    now = utcnow()
    try:
        stmt = select(AuthSession).where(
            AuthSession.refresh_token_hash == hash_token(refresh_token),
            AuthSession.principal_kind == PrincipalKind.CLIENT,
            AuthSession.revoked_at.is_(None),  # type: ignore[union-attr]
        )
        result = await session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None or row.refresh_expires_at is None or row.refresh_expires_at <= now:
            await _refresh_failed(
                session, row.principal_id if row is not None else None, "refresh_token_invalid",
            )
            return AuthResult.failure(AuthError.SESSION_NOT_FOUND)

        if await _resolve_principal(session, row) is None:
            await _refresh_failed(session, row.principal_id, "principal_missing")
            return AuthResult.failure(AuthError.SESSION_NOT_FOUND)

        principal_id = row.principal_id
        token = generate_token()
        row.token_hash = hash_token(token)
        row.expires_at = now + SESSION_TTL[PrincipalKind.CLIENT]
        row.last_used_at = now
        session.add(row)
        await session.commit()
    except SQLAlchemyError:
        logger.exception("Token refresh failed")
        await session.rollback()
        await _refresh_failed(session, None, "backing_store_failure")
        return AuthResult.failure(AuthError.BACKING_STORE_FAILURE)

    await record_event(
        session, AuditAction.CLIENT_TOKEN_REFRESHED, ActorKind.CLIENT, principal_id,
        details={"session_id": row.id},
    )
    return AuthResult.success(RefreshSuccess(token=token, expires_at=row.expires_at))


async def _refresh_failed(
    session: AsyncSession, principal_id: uuid.UUID | None, reason: str
) -> None:
    await record_event(
        session, AuditAction.CLIENT_TOKEN_REFRESH_FAILED, ActorKind.CLIENT, principal_id,
        details={"reason": reason},
    )


# ── Logout ────────────────────────────────────────────────────

async def logout(session: AsyncSession, token: str) -> None:
    """Revoke the session behind ``token``. Never raises; unknown tokens are ignored."""
    if not token:
        return

    digest = hash_token(token)
    try:
        result = await session.execute(
            select(AuthSession).where(AuthSession.token_hash == digest)
        )
        row = result.scalar_one_or_none()
        if row is not None:
            await _revoke(session, row, reason="logout")
            return

        result = await session.execute(
            select(GuestSession).where(GuestSession.token_hash == digest)
        )
        guest = result.scalar_one_or_none()
        if guest is not None:
            tenant_id = guest.tenant_id
            await session.delete(guest)
            await session.commit()
            await record_event(
                session, AuditAction.GUEST_LOGOUT, ActorKind.GUEST,
                details={"tenant_id": tenant_id},
            )
    except SQLAlchemyError:
        logger.exception("Logout failed")
        await session.rollback()


async def _revoke(session: AsyncSession, row: AuthSession, reason: str) -> None:
    # Conditional so that two racing logouts revoke (and audit) once
    stmt = (
        update(AuthSession)
        .where(
            AuthSession.id == row.id,
            AuthSession.revoked_at.is_(None),  # type: ignore[union-attr]
        )
        .values(revoked_at=utcnow(), revoked_reason=reason)
    )
    result = await session.execute(stmt)
    await session.commit()
    if result.rowcount != 1:
        return

    await record_event(
        session, _LOGOUT_AUDIT[row.principal_kind], ActorKind(row.principal_kind),
        row.principal_id, details={"session_id": row.id, "reason": reason},
    )
