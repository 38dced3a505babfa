"""Typed outcomes returned by the session and delegation authorities.

Expected failures (bad credential, bad session, bad grant) are values, not
exceptions: every authority call returns an ``AuthResult`` and callers
branch on ``result.ok``.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class AuthError(StrEnum):
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_NOT_ELIGIBLE = "account_not_eligible"
    SESSION_NOT_FOUND = "session_not_found"
    TARGET_NOT_FOUND = "target_not_found"
    GRANT_EXHAUSTED = "grant_exhausted"
    BACKING_STORE_FAILURE = "backing_store_failure"


@dataclass(frozen=True)
class AuthResult(Generic[T]):
    """Either a ``value`` or an ``error``, never both."""
    value: T | None = None
    error: AuthError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "AuthResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AuthError) -> "AuthResult[T]":
        return cls(error=error)
