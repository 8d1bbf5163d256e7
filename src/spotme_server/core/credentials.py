"""Admin credential primitives: Argon2 password hashing and opaque tokens."""

import hashlib
import hmac
import secrets
from typing import NamedTuple

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

# Token format: spa_<40 hex chars>
TOKEN_PREFIX = "spa_"
TOKEN_RANDOM_LENGTH = 40

_hasher = PasswordHasher()


class GeneratedToken(NamedTuple):
    """Result of generating a new admin token."""

    raw_token: str  # Returned to the admin once
    token_hash: str  # SHA-256 hash for storage
    token_prefix: str  # First 12 chars for identification


def hash_password(password: str) -> str:
    """Hash a password using Argon2."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its Argon2 hash.

    Returns:
        True if password matches, False for a mismatch or a corrupt hash
    """
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_admin_token() -> GeneratedToken:
    """Generate a new admin bearer token.

    Example:
        >>> token = generate_admin_token()
        >>> token.raw_token[:4]
        'spa_'
    """
    raw_token = f"{TOKEN_PREFIX}{secrets.token_hex(TOKEN_RANDOM_LENGTH // 2)}"
    return GeneratedToken(
        raw_token=raw_token,
        token_hash=hash_token(raw_token),
        token_prefix=raw_token[:12],
    )


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest used to look tokens up."""
    return hashlib.sha256(raw_token.encode()).hexdigest()


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time to prevent timing attacks."""
    return hmac.compare_digest(a.encode(), b.encode())
