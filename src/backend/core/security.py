"""Security utilities for authentication and authorization.

Password hashing, client fingerprinting and signed token management.
Persisted documents never carry hashing behaviour themselves; everything
that touches a secret goes through this module.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from core.config import settings
from core.exceptions import InvalidTokenError

# Token issuer and audience for validation
TOKEN_ISSUER = "selfquestion-api"
TOKEN_AUDIENCE = "selfquestion-client"

# Token types
ADMIN_TOKEN = "admin"
REFRESH_TOKEN = "refresh"
DEBATE_AUTHOR_TOKEN = "debate_author"
SURVEY_AUTHOR_TOKEN = "survey_author"


# ============================================================================
# Credential Hashing
# ============================================================================


def hash_password(plaintext: str) -> str:
    """Hash a password with a salted, one-way key derivation function."""
    return generate_password_hash(plaintext, method=settings.PASSWORD_HASH_METHOD, salt_length=16)


def verify_password(plaintext: str, hashed: str | None) -> bool:
    """
    Check a password against a stored hash.

    Returns False for empty or malformed hashes instead of raising.
    """
    if not plaintext or not hashed:
        return False
    try:
        return check_password_hash(hashed, plaintext)
    except ValueError:
        return False


def hash_identifier(raw: str, salt: str | None = None) -> str:
    """
    Anonymize a client identifier (usually an IP address).

    The digest is deterministic for the same raw value and salt, which is what
    duplicate-vote detection relies on. The raw value is never stored.
    """
    salt = settings.IP_SALT if salt is None else salt
    return hashlib.sha256(f"{raw}{salt}".encode()).hexdigest()


def hash_token(token: str) -> str:
    """Digest of an issued token, stored so the token itself is never persisted."""
    return hashlib.sha256(token.encode()).hexdigest()


def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode(), b.encode())


# ============================================================================
# Tokens
# ============================================================================


def _create_token_base(
    data: dict[str, Any],
    token_type: str,
    expires_delta: timedelta,
) -> str:
    """Create a JWT token with standard claims."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + expires_delta
    to_encode.update(
        {
            "exp": expire,
            "iat": now,
            "type": token_type,
            "iss": TOKEN_ISSUER,
            "aud": TOKEN_AUDIENCE,
            "jti": secrets.token_urlsafe(16),
        }
    )
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_admin_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create an admin session token (24 hours by default)."""
    delta = expires_delta or timedelta(hours=settings.ADMIN_TOKEN_EXPIRE_HOURS)
    return _create_token_base(data, ADMIN_TOKEN, delta)


def create_refresh_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create an admin refresh token (7 days by default)."""
    delta = expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _create_token_base(data, REFRESH_TOKEN, delta)


def create_author_token(
    token_type: str,
    resource_id: str,
    expires_delta: timedelta | None = None,
) -> tuple[str, datetime]:
    """
    Create an author session token for a debate or survey.

    Returns the token together with its expiry so callers can store it.
    """
    delta = expires_delta or timedelta(days=settings.AUTHOR_TOKEN_EXPIRE_DAYS)
    expires_at = datetime.now(timezone.utc) + delta
    token = _create_token_base({"sub": resource_id}, token_type, delta)
    return token, expires_at


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any]:
    """
    Decode and validate a JWT token.

    Args:
        token: The JWT token to decode
        expected_type: If provided, validates the token type matches

    Returns:
        The decoded payload

    Raises:
        InvalidTokenError: bad signature, wrong issuer/audience, expired, or wrong type
    """
    if not token:
        raise InvalidTokenError("No token provided")
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=TOKEN_ISSUER,
            audience=TOKEN_AUDIENCE,
        )
    except JWTError as e:
        raise InvalidTokenError() from e
    if expected_type and payload.get("type") != expected_type:
        raise InvalidTokenError("Unexpected token type")
    return payload


# ============================================================================
# Random identifiers
# ============================================================================


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token."""
    return secrets.token_urlsafe(length)


def generate_document_id() -> str:
    """Opaque 16 hex character document id."""
    return secrets.token_hex(8)


def generate_response_code() -> str:
    """Eight upper-case hex characters handed back to survey respondents."""
    return secrets.token_hex(4).upper()
