"""FastAPI dependencies for bearer tokens and superuser resolution."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from reflets.api.errors import http_error
from reflets.core.database import get_session
from reflets.models.principal import PrincipalKind, SuperuserPrincipal
from reflets.services.sessions import verify_session

bearer_scheme = HTTPBearer()


async def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> str:
    """Return the raw opaque token from the Authorization header."""
    return credentials.credentials


async def require_superuser(
    token: Annotated[str, Depends(get_bearer_token)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SuperuserPrincipal:
    """Resolve the bearer token to an active superuser session or fail with 401."""
    result = await verify_session(session, token, PrincipalKind.GOD)
    if not result.ok:
        raise http_error(result.error)
    return result.value  # type: ignore[return-value]


# Typed shorthand for use in route signatures
BearerToken = Annotated[str, Depends(get_bearer_token)]
God = Annotated[SuperuserPrincipal, Depends(require_superuser)]
Session = Annotated[AsyncSession, Depends(get_session)]
