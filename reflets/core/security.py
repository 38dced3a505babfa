"""Security utilities: password hashing and opaque token helpers."""

import hashlib
import secrets

from passlib.context import CryptContext

# ── Token sizes (random bytes before hex encoding) ───────────

SESSION_TOKEN_BYTES = 32
DELEGATION_TOKEN_BYTES = 32
GUEST_IDENTIFIER_BYTES = 16

# ── Password hashing (Argon2) ────────────────────────────────

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    """Compare a secret against a stored hash. Malformed hashes never match."""
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


def dummy_verify() -> None:
    """Spend the same time as a real verification when the account is unknown."""
    pwd_context.dummy_verify()


# ── Opaque tokens ─────────────────────────────────────────────

def generate_token(byte_length: int = SESSION_TOKEN_BYTES) -> str:
    """Generate a hex token from ``byte_length`` CSPRNG bytes."""
    return secrets.token_hex(byte_length)


def hash_token(raw_token: str) -> str:
    """One-way SHA-256 digest used to store and look up tokens.

    Tokens are looked up on every request, so the digest must be
    deterministic and fast. The raw token has at least 256 bits of
    entropy, so brute-force is infeasible.
    """
    return hashlib.sha256(raw_token.encode()).hexdigest()
