"""Credential verification for superusers and tenant owners."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from reflets.core.security import dummy_verify, verify_password
from reflets.models.principal import PrincipalKind
from reflets.models.superuser import Superuser
from reflets.models.tenant_owner import TenantOwner

logger = logging.getLogger(__name__)


async def verify_credentials(
    session: AsyncSession,
    kind: PrincipalKind,
    identifier: str,
    secret: str,
) -> Superuser | TenantOwner | None:
    """Return the matching account, or ``None`` for any failure.

    Unknown identifier, wrong secret, and backing-store errors all look
    the same to the caller, and an unknown identifier still pays for one
    hash verification.
    """
    try:
        account = await _lookup(session, kind, identifier)
    except SQLAlchemyError:
        logger.exception("Credential lookup failed for %s login", kind)
        await session.rollback()
        dummy_verify()
        return None

    if account is None:
        dummy_verify()
        return None

    if not verify_password(secret, account.password_hash):
        return None
    return account


async def _lookup(
    session: AsyncSession, kind: PrincipalKind, identifier: str
) -> Superuser | TenantOwner | None:
    if kind == PrincipalKind.GOD:
        stmt = select(Superuser).where(
            Superuser.username == identifier.strip(),
            Superuser.is_active.is_(True),  # type: ignore[union-attr]
        )
    elif kind == PrincipalKind.CLIENT:
        stmt = select(TenantOwner).where(
            TenantOwner.email == identifier.strip().lower(),
        )
    else:
        raise ValueError("Guests authenticate with an access code, not a secret")

    result = await session.execute(stmt)
    return result.scalar_one_or_none()
