"""Tests for the session authority: login, verify, refresh, logout, guest access."""

from datetime import timedelta

import pytest
from sqlmodel import select

from reflets.core.errors import AuthError
from reflets.core.security import hash_token
from reflets.models.audit_log import AuditAction
from reflets.models.base import utcnow
from reflets.models.guest_session import GuestSession
from reflets.models.principal import AccessType, PrincipalKind, SubscriptionStatus
from reflets.models.session import AuthSession
from reflets.services import clients, sessions

GOD_PASSWORD = "god-password-123"
OWNER_PASSWORD = "owner-password-123"


async def _session_rows(session) -> list[AuthSession]:
    result = await session.execute(select(AuthSession))
    return list(result.scalars().all())


# ── Login ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_god_login_then_verify(session, superuser, audit_entries):
    result = await sessions.login(session, PrincipalKind.GOD, "kevin", GOD_PASSWORD)
    assert result.ok
    assert result.value.principal.username == "kevin"
    assert result.value.refresh_token is None
    assert len(result.value.token) == 64

    verified = await sessions.verify_session(session, result.value.token, PrincipalKind.GOD)
    assert verified.ok
    assert verified.value.id == superuser.id
    assert verified.value.kind == "god"

    assert len(await audit_entries(AuditAction.GOD_LOGIN_SUCCESS)) == 1


@pytest.mark.asyncio
async def test_client_login_issues_refresh_token(session, make_client, audit_entries):
    owner, tenant = await make_client("login-ok")

    result = await sessions.login(
        session, PrincipalKind.CLIENT, "Owner@Login-OK.test ", OWNER_PASSWORD,
    )
    assert result.ok
    principal = result.value.principal
    assert principal.id == owner.id
    assert principal.tenant_id == tenant.id
    assert principal.tenant_slug == "login-ok"
    assert result.value.refresh_token is not None

    rows = await _session_rows(session)
    assert len(rows) == 1
    row = rows[0]
    assert row.principal_kind == PrincipalKind.CLIENT
    assert row.token_hash == hash_token(result.value.token)
    assert row.expires_at - row.issued_at == sessions.SESSION_TTL[PrincipalKind.CLIENT]
    assert row.refresh_expires_at - row.issued_at == sessions.REFRESH_TTL
    assert owner.last_login_at is not None

    assert len(await audit_entries(AuditAction.CLIENT_LOGIN_SUCCESS)) == 1


@pytest.mark.asyncio
async def test_wrong_secret_and_unknown_identifier_are_indistinguishable(
    session, superuser, audit_entries,
):
    wrong_secret = await sessions.login(session, PrincipalKind.GOD, "kevin", "not-the-password")
    unknown_user = await sessions.login(session, PrincipalKind.GOD, "nobody", "not-the-password")

    assert not wrong_secret.ok
    assert wrong_secret == unknown_user
    assert wrong_secret.error == AuthError.INVALID_CREDENTIALS
    assert await _session_rows(session) == []
    assert len(await audit_entries(AuditAction.GOD_LOGIN_FAILED)) == 2


@pytest.mark.asyncio
async def test_client_wrong_secret_matches_unknown_email(session, make_client):
    await make_client("enum-check")

    wrong = await sessions.login(session, PrincipalKind.CLIENT, "owner@enum-check.test", "nope")
    missing = await sessions.login(session, PrincipalKind.CLIENT, "ghost@enum-check.test", "nope")
    assert wrong == missing
    assert wrong.error == AuthError.INVALID_CREDENTIALS


@pytest.mark.asyncio
async def test_empty_credentials_rejected(session, audit_entries):
    result = await sessions.login(session, PrincipalKind.GOD, "", "")
    assert result.error == AuthError.INVALID_CREDENTIALS
    assert len(await audit_entries(AuditAction.GOD_LOGIN_FAILED)) == 1


@pytest.mark.asyncio
async def test_inactive_superuser_cannot_login(session, superuser):
    superuser.is_active = False
    session.add(superuser)
    await session.commit()

    result = await sessions.login(session, PrincipalKind.GOD, "kevin", GOD_PASSWORD)
    assert result.error == AuthError.INVALID_CREDENTIALS


@pytest.mark.asyncio
async def test_expired_client_blocked_with_single_audit_entry(
    session, make_client, audit_entries,
):
    await make_client("expired-co", status=SubscriptionStatus.EXPIRED)

    result = await sessions.login(
        session, PrincipalKind.CLIENT, "owner@expired-co.test", OWNER_PASSWORD,
    )
    assert result.error == AuthError.ACCOUNT_NOT_ELIGIBLE
    assert await _session_rows(session) == []

    entries = await audit_entries()
    assert len(entries) == 1
    assert entries[0].action == AuditAction.CLIENT_LOGIN_FAILED


@pytest.mark.asyncio
async def test_trial_client_can_login(session, make_client):
    await make_client("trial-co", status=SubscriptionStatus.TRIAL)
    result = await sessions.login(
        session, PrincipalKind.CLIENT, "owner@trial-co.test", OWNER_PASSWORD,
    )
    assert result.ok
    assert result.value.principal.subscription_status == SubscriptionStatus.TRIAL


@pytest.mark.asyncio
async def test_lapsed_subscription_flips_to_expired(session, make_client):
    owner, _ = await make_client(
        "lapsed-co", subscription_end_date=utcnow() - timedelta(days=1),
    )

    result = await sessions.login(
        session, PrincipalKind.CLIENT, "owner@lapsed-co.test", OWNER_PASSWORD,
    )
    assert result.error == AuthError.ACCOUNT_NOT_ELIGIBLE
    assert owner.subscription_status == SubscriptionStatus.EXPIRED
    assert await _session_rows(session) == []


@pytest.mark.asyncio
async def test_guest_kind_cannot_password_login(session):
    with pytest.raises(ValueError):
        await sessions.login(session, PrincipalKind.GUEST, "someone", "secret")


# ── Verification ──────────────────────────────────────────────

@pytest.mark.asyncio
async def test_verify_unknown_token(session):
    result = await sessions.verify_session(session, "deadbeef", PrincipalKind.CLIENT)
    assert result.error == AuthError.SESSION_NOT_FOUND

    result = await sessions.verify_session(session, "", PrincipalKind.GOD)
    assert result.error == AuthError.SESSION_NOT_FOUND


@pytest.mark.asyncio
async def test_verify_rejects_wrong_kind(session, superuser):
    login = await sessions.login(session, PrincipalKind.GOD, "kevin", GOD_PASSWORD)
    result = await sessions.verify_session(session, login.value.token, PrincipalKind.CLIENT)
    assert result.error == AuthError.SESSION_NOT_FOUND


@pytest.mark.asyncio
async def test_verify_rejects_expired_session(session, superuser):
    login = await sessions.login(session, PrincipalKind.GOD, "kevin", GOD_PASSWORD)
    row = (await _session_rows(session))[0]
    row.expires_at = utcnow() - timedelta(seconds=1)
    session.add(row)
    await session.commit()

    result = await sessions.verify_session(session, login.value.token, PrincipalKind.GOD)
    assert result.error == AuthError.SESSION_NOT_FOUND


@pytest.mark.asyncio
async def test_verify_touches_last_used_at(session, make_client):
    await make_client("touch-co")
    login = await sessions.login(
        session, PrincipalKind.CLIENT, "owner@touch-co.test", OWNER_PASSWORD,
    )
    row = (await _session_rows(session))[0]
    row.last_used_at = utcnow() - timedelta(hours=3)
    session.add(row)
    await session.commit()

    result = await sessions.verify_session(session, login.value.token, PrincipalKind.CLIENT)
    assert result.ok
    assert utcnow() - row.last_used_at < timedelta(minutes=1)


# ── Logout ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_verify_fails_after_logout(session, superuser, audit_entries):
    login = await sessions.login(session, PrincipalKind.GOD, "kevin", GOD_PASSWORD)
    token = login.value.token

    await sessions.logout(session, token)

    result = await sessions.verify_session(session, token, PrincipalKind.GOD)
    assert result.error == AuthError.SESSION_NOT_FOUND

    row = (await _session_rows(session))[0]
    assert row.revoked_at is not None
    assert row.revoked_reason == "logout"
    assert len(await audit_entries(AuditAction.GOD_LOGOUT)) == 1


@pytest.mark.asyncio
async def test_logout_is_idempotent(session, superuser, audit_entries):
    login = await sessions.login(session, PrincipalKind.GOD, "kevin", GOD_PASSWORD)

    await sessions.logout(session, login.value.token)
    await sessions.logout(session, login.value.token)
    await sessions.logout(session, "never-issued")
    await sessions.logout(session, "")

    assert len(await audit_entries(AuditAction.GOD_LOGOUT)) == 1


# ── Refresh ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_refresh_rotates_access_token(session, make_client, audit_entries):
    await make_client("refresh-co")
    login = await sessions.login(
        session, PrincipalKind.CLIENT, "owner@refresh-co.test", OWNER_PASSWORD,
    )

    result = await sessions.refresh(session, login.value.refresh_token)
    assert result.ok
    new_token = result.value.token
    assert new_token != login.value.token

    old = await sessions.verify_session(session, login.value.token, PrincipalKind.CLIENT)
    assert old.error == AuthError.SESSION_NOT_FOUND
    new = await sessions.verify_session(session, new_token, PrincipalKind.CLIENT)
    assert new.ok

    # Same row, refresh token unchanged
    rows = await _session_rows(session)
    assert len(rows) == 1
    assert rows[0].refresh_token_hash == hash_token(login.value.refresh_token)
    assert len(await audit_entries(AuditAction.CLIENT_TOKEN_REFRESHED)) == 1


@pytest.mark.asyncio
async def test_refresh_after_refresh_expiry_fails(session, make_client, audit_entries):
    await make_client("stale-refresh")
    login = await sessions.login(
        session, PrincipalKind.CLIENT, "owner@stale-refresh.test", OWNER_PASSWORD,
    )
    row = (await _session_rows(session))[0]
    row.refresh_expires_at = utcnow() - timedelta(seconds=1)
    session.add(row)
    await session.commit()
    token_hash_before = row.token_hash

    result = await sessions.refresh(session, login.value.refresh_token)
    assert result.error == AuthError.SESSION_NOT_FOUND
    assert row.token_hash == token_hash_before
    assert len(await audit_entries(AuditAction.CLIENT_TOKEN_REFRESH_FAILED)) == 1


@pytest.mark.asyncio
async def test_refresh_after_logout_fails(session, make_client):
    await make_client("revoked-refresh")
    login = await sessions.login(
        session, PrincipalKind.CLIENT, "owner@revoked-refresh.test", OWNER_PASSWORD,
    )
    await sessions.logout(session, login.value.token)

    result = await sessions.refresh(session, login.value.refresh_token)
    assert result.error == AuthError.SESSION_NOT_FOUND


@pytest.mark.asyncio
async def test_refresh_with_unknown_token(session):
    result = await sessions.refresh(session, "not-a-refresh-token")
    assert result.error == AuthError.SESSION_NOT_FOUND


@pytest.mark.asyncio
async def test_refresh_with_empty_token_is_audited(session, audit_entries):
    result = await sessions.refresh(session, "")
    assert result.error == AuthError.SESSION_NOT_FOUND

    entries = await audit_entries(AuditAction.CLIENT_TOKEN_REFRESH_FAILED)
    assert len(entries) == 1
    assert '"reason": "missing_refresh_token"' in entries[0].details


@pytest.mark.asyncio
async def test_refresh_after_owner_deleted(session, superuser, make_client, audit_entries):
    owner, _ = await make_client("deleted-refresh")
    login = await sessions.login(
        session, PrincipalKind.CLIENT, "owner@deleted-refresh.test", OWNER_PASSWORD,
    )
    row = (await _session_rows(session))[0]
    token_hash_before = row.token_hash

    deleted = await clients.delete_client(session, superuser.id, owner.id)
    assert deleted.ok

    result = await sessions.refresh(session, login.value.refresh_token)
    assert result.error == AuthError.SESSION_NOT_FOUND
    assert row.token_hash == token_hash_before
    assert await audit_entries(AuditAction.CLIENT_TOKEN_REFRESHED) == []
    failed = await audit_entries(AuditAction.CLIENT_TOKEN_REFRESH_FAILED)
    assert len(failed) == 1
    assert '"reason": "principal_missing"' in failed[0].details


# ── Guest access ──────────────────────────────────────────────

@pytest.mark.asyncio
async def test_guest_code_grants_guest_access(session, make_client, audit_entries):
    _, tenant = await make_client("guest-co", guest_code="MARIAGE1", admin_code="ADMIN-XYZ")

    result = await sessions.guest_login(session, "  mariage1 ", display_name="Tante Jo")
    assert result.ok
    assert result.value.access_type == AccessType.GUEST
    principal = result.value.principal
    assert principal.tenant_id == tenant.id
    assert principal.display_name == "Tante Jo"
    assert len(principal.guest_identifier) == 32

    assert len(await audit_entries(AuditAction.GUEST_LOGIN)) == 1


@pytest.mark.asyncio
async def test_admin_code_grants_admin_access(session, make_client):
    await make_client("admin-co", guest_code="GUEST-ABC", admin_code="ADMIN-ABC")

    result = await sessions.guest_login(session, "ADMIN-ABC")
    assert result.ok
    assert result.value.access_type == AccessType.ADMIN


@pytest.mark.asyncio
async def test_code_shared_across_tenants_is_rejected(session, make_client, audit_entries):
    # Guest slot of one tenant equals the admin slot of another
    await make_client("first-co", guest_code="SHARED1")
    await make_client("second-co", admin_code="SHARED1")

    result = await sessions.guest_login(session, "shared1")
    assert result.error == AuthError.INVALID_CREDENTIALS

    rows = await session.execute(select(GuestSession))
    assert rows.scalars().all() == []
    entries = await audit_entries(AuditAction.GUEST_LOGIN_FAILED)
    assert len(entries) == 1
    assert '"reason": "ambiguous_code"' in entries[0].details


@pytest.mark.asyncio
async def test_admin_slot_wins_within_one_tenant(session, make_client):
    await make_client("same-co", guest_code="SAME1", admin_code="SAME1")
    result = await sessions.guest_login(session, "SAME1")
    assert result.ok
    assert result.value.access_type == AccessType.ADMIN


@pytest.mark.asyncio
async def test_guest_identifier_is_kept_when_supplied(session, make_client):
    await make_client("device-co", guest_code="DEVICE1")
    result = await sessions.guest_login(session, "DEVICE1", guest_identifier="device-42")
    assert result.value.principal.guest_identifier == "device-42"


@pytest.mark.asyncio
async def test_unknown_guest_code(session, make_client, audit_entries):
    await make_client("nocode-co")

    result = await sessions.guest_login(session, "WRONG")
    assert result.error == AuthError.INVALID_CREDENTIALS
    empty = await sessions.guest_login(session, "   ")
    assert empty.error == AuthError.INVALID_CREDENTIALS
    assert len(await audit_entries(AuditAction.GUEST_LOGIN_FAILED)) == 2


@pytest.mark.asyncio
async def test_guest_blocked_when_tenant_expired(session, make_client):
    await make_client("closed-co", status=SubscriptionStatus.EXPIRED, guest_code="CLOSED1")
    result = await sessions.guest_login(session, "CLOSED1")
    assert result.error == AuthError.ACCOUNT_NOT_ELIGIBLE


@pytest.mark.asyncio
async def test_guest_session_verify_and_logout(session, make_client, audit_entries):
    _, tenant = await make_client("party-co", guest_code="PARTY1")
    login = await sessions.guest_login(session, "PARTY1", display_name="Max")

    verified = await sessions.verify_session(session, login.value.token, PrincipalKind.GUEST)
    assert verified.ok
    assert verified.value.kind == "guest"
    assert verified.value.tenant_slug == "party-co"
    assert verified.value.access_type == AccessType.GUEST

    await sessions.logout(session, login.value.token)
    after = await sessions.verify_session(session, login.value.token, PrincipalKind.GUEST)
    assert after.error == AuthError.SESSION_NOT_FOUND

    result = await session.execute(select(GuestSession).where(GuestSession.tenant_id == tenant.id))
    assert result.scalars().all() == []
    assert len(await audit_entries(AuditAction.GUEST_LOGOUT)) == 1


@pytest.mark.asyncio
async def test_guest_session_expires(session, make_client):
    await make_client("short-co", guest_code="SHORT1")
    login = await sessions.guest_login(session, "SHORT1")

    result = await session.execute(select(GuestSession))
    row = result.scalar_one()
    row.expires_at = utcnow() - timedelta(seconds=1)
    session.add(row)
    await session.commit()

    verified = await sessions.verify_session(session, login.value.token, PrincipalKind.GUEST)
    assert verified.error == AuthError.SESSION_NOT_FOUND
