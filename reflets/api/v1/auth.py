"""Authentication endpoints — login, guest login, refresh, logout, current principal."""

from fastapi import APIRouter, Query, Response, status
from pydantic import BaseModel, Field

from reflets.api.deps import BearerToken, Session
from reflets.api.errors import http_error
from reflets.core.errors import AuthError
from reflets.models.principal import (
    AccessType,
    GuestPrincipal,
    Principal,
    PrincipalKind,
    SuperuserPrincipal,
    TenantOwnerPrincipal,
)
from reflets.services import sessions

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Schemas ──────────────────────────────────────────────────

class LoginRequest(BaseModel):
    kind: PrincipalKind = Field(description="god or client")
    identifier: str = Field(max_length=320, description="Superuser username or owner email")
    secret: str = Field(max_length=256)


class LoginResponse(BaseModel):
    principal: SuperuserPrincipal | TenantOwnerPrincipal
    token: str
    refresh_token: str | None = None
    token_type: str = "bearer"


class GuestLoginRequest(BaseModel):
    code: str = Field(max_length=64)
    display_name: str | None = Field(default=None, max_length=255)
    guest_identifier: str | None = Field(default=None, max_length=64)


class GuestLoginResponse(BaseModel):
    principal: GuestPrincipal
    access_type: AccessType
    token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str = Field(max_length=256)


class RefreshResponse(BaseModel):
    token: str
    token_type: str = "bearer"


# ── Routes ───────────────────────────────────────────────────

@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, session: Session) -> LoginResponse:
    """Authenticate a superuser or tenant owner, receive an opaque session token."""
    if body.kind == PrincipalKind.GUEST:
        raise http_error(AuthError.INVALID_CREDENTIALS)

    result = await sessions.login(session, body.kind, body.identifier, body.secret)
    if not result.ok:
        raise http_error(result.error)
    return LoginResponse(
        principal=result.value.principal,
        token=result.value.token,
        refresh_token=result.value.refresh_token,
    )


@router.post("/guest-login", response_model=GuestLoginResponse)
async def guest_login(body: GuestLoginRequest, session: Session) -> GuestLoginResponse:
    """Enter a wedding space with its shared guest or admin code."""
    result = await sessions.guest_login(
        session, body.code, body.display_name, body.guest_identifier,
    )
    if not result.ok:
        raise http_error(result.error)
    return GuestLoginResponse(
        principal=result.value.principal,
        access_type=result.value.access_type,
        token=result.value.token,
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(body: RefreshRequest, session: Session) -> RefreshResponse:
    """Exchange a tenant-owner refresh token for a new access token."""
    result = await sessions.refresh(session, body.refresh_token)
    if not result.ok:
        raise http_error(result.error)
    return RefreshResponse(token=result.value.token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(token: BearerToken, session: Session) -> Response:
    """Revoke the presented session. Always succeeds."""
    await sessions.logout(session, token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=Principal)
async def get_me(
    token: BearerToken,
    session: Session,
    kind: PrincipalKind = Query(default=PrincipalKind.CLIENT),
) -> Principal:
    """Return the principal behind the presented token."""
    result = await sessions.verify_session(session, token, kind)
    if not result.ok:
        raise http_error(result.error)
    return result.value
