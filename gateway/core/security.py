"""Security utilities: bearer token verification, API key digests and webhook signatures."""

import hashlib
import hmac
import secrets
from datetime import UTC, datetime, timedelta

import jwt
from jwt import exceptions as jwt_exceptions

from gateway.core.config import get_settings

settings = get_settings()

SIGNATURE_SCHEME = "sha256"


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token.

    Tokens are normally minted by the identity provider; this helper exists for
    service accounts and tests that share the signing secret.

    Args:
        data: Dictionary of claims to encode in the token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict | None:
    """Decode and validate a JWT token.

    Returns:
        Decoded token payload if valid, None otherwise
    """
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt_exceptions.PyJWTError:
        return None


def generate_api_key() -> str:
    """Generate a high-entropy API key secret (shown once)."""
    return f"{settings.api_key_prefix}{secrets.token_urlsafe(32)}"


def digest_key(api_key: str) -> str:
    """Keyed one-way digest of an API key secret.

    HMAC-SHA-256 with the server pepper: deterministic, so it can be used as the
    lookup key, and useless to anyone holding only the database.
    """
    return hmac.new(
        settings.api_key_pepper.encode("utf-8"),
        api_key.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def display_prefix(api_key: str) -> str:
    """Non-secret prefix shown in key listings."""
    return api_key[:12] + "..."


def generate_webhook_secret() -> str:
    return f"whsec_{secrets.token_urlsafe(24)}"


def sign_payload(body: bytes, secret: str) -> str:
    """Signature header value for an outbound webhook body.

    Computed over the exact bytes sent, formatted as ``sha256=<hex>``.
    """
    mac = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_SCHEME}={mac}"


def verify_signature(body: bytes, secret: str, header_value: str | None) -> bool:
    """Receiver-side check of a webhook signature header (constant time)."""
    if not header_value:
        return False
    return hmac.compare_digest(sign_payload(body, secret), header_value.strip())
