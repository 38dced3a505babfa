"""Shared test fixtures — async SQLite DB per test + test client."""

from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, select

# Import all models so metadata is populated
import reflets.models  # noqa: F401
from reflets.core.database import get_session
from reflets.core.security import hash_password
from reflets.main import app
from reflets.models.audit_log import AuditEntry
from reflets.models.principal import SubscriptionStatus
from reflets.models.superuser import Superuser
from reflets.models.tenant import Tenant
from reflets.models.tenant_owner import TenantOwner

GOD_PASSWORD = "god-password-123"
OWNER_PASSWORD = "owner-password-123"


@pytest.fixture
async def engine(tmp_path):
    # On-disk so that separate sessions really use separate connections
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'reflets.db'}", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
async def client(session) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session override."""

    async def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def superuser(session) -> Superuser:
    admin = Superuser(
        username="kevin",
        password_hash=hash_password(GOD_PASSWORD),
        email="kevin@reflets.test",
    )
    session.add(admin)
    await session.commit()
    return admin


@pytest.fixture
def make_client(session):
    """Factory: create a tenant owner and their wedding space."""

    async def _make(
        slug: str,
        *,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        guest_code: str | None = None,
        admin_code: str | None = None,
        subscription_end_date: datetime | None = None,
    ) -> tuple[TenantOwner, Tenant]:
        owner = TenantOwner(
            email=f"owner@{slug}.test",
            password_hash=hash_password(OWNER_PASSWORD),
            display_name=f"{slug} owner",
            subscription_status=status,
            subscription_end_date=subscription_end_date,
        )
        session.add(owner)
        await session.flush()
        tenant = Tenant(
            owner_id=owner.id,
            name=f"Mariage {slug}",
            slug=slug,
            guest_code=guest_code or f"G-{slug}".upper(),
            admin_code=admin_code or f"A-{slug}".upper(),
        )
        session.add(tenant)
        await session.commit()
        return owner, tenant

    return _make


@pytest.fixture
def audit_entries(session):
    """Return audit entries, optionally filtered by action."""

    async def _entries(action: str | None = None) -> list[AuditEntry]:
        stmt = select(AuditEntry)
        if action is not None:
            stmt = stmt.where(AuditEntry.action == action)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    return _entries
