"""Translate authority outcomes into HTTP errors with fixed messages."""

from fastapi import HTTPException, status

from reflets.core.errors import AuthError

_HTTP_ERRORS: dict[AuthError, tuple[int, str]] = {
    AuthError.INVALID_CREDENTIALS: (status.HTTP_401_UNAUTHORIZED, "Invalid credentials"),
    AuthError.SESSION_NOT_FOUND: (status.HTTP_401_UNAUTHORIZED, "Invalid or expired session"),
    AuthError.ACCOUNT_NOT_ELIGIBLE: (status.HTTP_403_FORBIDDEN, "Account is suspended or expired"),
    AuthError.TARGET_NOT_FOUND: (status.HTTP_404_NOT_FOUND, "Target not found"),
    AuthError.GRANT_EXHAUSTED: (status.HTTP_410_GONE, "Access token is invalid, expired or used"),
    AuthError.BACKING_STORE_FAILURE: (
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Service temporarily unavailable",
    ),
}


def http_error(error: AuthError | None) -> HTTPException:
    """Build the HTTPException for ``error``. Internal detail is never echoed."""
    code, message = _HTTP_ERRORS.get(
        error, (status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
    )
    headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(
        status_code=code,
        detail={"error": str(error), "message": message},
        headers=headers,
    )
