"""
Token service: opaque one-time tokens for email verification and password reset.

Pure functions only: nothing here touches the database. Persistence of the
issued tokens is done by credential_store.issue_token().

Token format:
  32 bytes from the `secrets` CSPRNG, hex-encoded -> 64 lowercase hex chars.
  Anything that does not match that shape is rejected before a lookup.

Purposes:
  Both purposes share one storage table. A password-reset token is stored
  with the "reset_" prefix; the user only ever sees the bare hex value.
"""

import enum
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from egp_api.config import settings

DEFAULT_TOKEN_BYTES = 32

_TOKEN_PATTERN = re.compile(r"^[a-f0-9]{64}$")


class TokenPurpose(str, enum.Enum):
    VERIFICATION = "verification"
    PASSWORD_RESET = "password_reset"

    @property
    def storage_prefix(self) -> str:
        return "reset_" if self is TokenPurpose.PASSWORD_RESET else ""

    @property
    def lifetime(self) -> timedelta:
        if self is TokenPurpose.PASSWORD_RESET:
            return timedelta(hours=settings.RESET_TOKEN_EXPIRE_HOURS)
        return timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS)


@dataclass(frozen=True)
class IssuedToken:
    """A freshly generated token as the user will receive it."""
    token: str
    expires_at: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_token(length: int = DEFAULT_TOKEN_BYTES) -> str:
    """Return `length` random bytes as a hex string (2 * length characters)."""
    return secrets.token_hex(length)


def issue_token(purpose: TokenPurpose) -> IssuedToken:
    return IssuedToken(token=generate_token(), expires_at=utc_now() + purpose.lifetime)


def issue_verification_token() -> IssuedToken:
    """New verification token, valid for 24 hours by default."""
    return issue_token(TokenPurpose.VERIFICATION)


def issue_reset_token() -> IssuedToken:
    """New password-reset token, valid for 1 hour by default."""
    return issue_token(TokenPurpose.PASSWORD_RESET)


def storage_value(token: str, purpose: TokenPurpose) -> str:
    """The value actually written to verification_tokens.token."""
    return f"{purpose.storage_prefix}{token}"


def is_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    """
    Strict expiry check: a token is still valid at exactly its expiry instant.

    SQLite hands back naive datetimes even for timezone-aware columns; those
    are interpreted as UTC.
    """
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return (now or utc_now()) > expires_at


def is_valid_format(token: str | None) -> bool:
    """True only for exactly 64 lowercase hex characters."""
    return bool(token) and _TOKEN_PATTERN.fullmatch(token) is not None
