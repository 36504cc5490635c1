"""
Security utilities: password hashing and session JWTs.

This module centralizes all cryptographic operations so they're easy to
audit and update. Two concerns are handled here:

1. PASSWORD HASHING (Argon2)
   - Passwords are never stored in plaintext
   - passlib's CryptContext wraps Argon2id and verifies in constant time
   - dummy_verify() burns the same amount of work as a real verification,
     so a login for an unknown email takes as long as one for a known email

2. SESSION JWTs (JSON Web Tokens)
   - After login, the user receives a signed JWT carrying their user ID
     ("sub"), server-side session ID ("sid") and role
   - The token is signed with SECRET_KEY using HS256 (HMAC-SHA256)
   - A valid signature alone is not enough: the "sid" must still name a live
     row in the sessions table, which is how a password reset logs a user
     out everywhere

One-time email tokens (verification / password reset) are opaque random
strings, not JWTs; see services/token_service.py.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from egp_api.config import settings


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

# "deprecated='auto'" lets passlib verify old hashes with their original
# scheme if the active scheme ever changes.
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using Argon2id.

    Returns:
        An Argon2 hash string (e.g., "$argon2id$v=19$m=65536,t=3,p=4$...").
    """
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify a plaintext password against a stored Argon2 hash.

    A missing hash never matches, but still costs a full verification.
    """
    if not hashed_password:
        dummy_verify()
        return False
    return pwd_context.verify(plain_password, hashed_password)


def dummy_verify() -> None:
    """Spend the time of one password verification without checking anything."""
    pwd_context.dummy_verify()


# ---------------------------------------------------------------------------
# 2. Session JWTs
# ---------------------------------------------------------------------------


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Dictionary of claims to encode (must include "sub" and "sid").
        expires_delta: Optional custom expiration time. Defaults to
                       ACCESS_TOKEN_EXPIRE_MINUTES from settings.

    Returns:
        An encoded JWT string.
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.

    Raises:
        JWTError: If the token is expired, tampered with, or invalid.

    Returns:
        The decoded payload dictionary (contains "sub", "sid", "exp", etc.).
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
