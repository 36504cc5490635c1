"""
VerificationToken model: one-time tokens for email verification and
password reset, sharing one table.

The purpose is encoded in the stored value: password-reset rows carry a
"reset_" prefix, verification rows are the bare 64-character hex token.
The prefix is never part of the token the user receives.

At most one live token exists per (identifier, purpose): issuing a new one
deletes the previous ones in the same transaction.
"""

from datetime import datetime

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from egp_api.database import Base


class VerificationToken(Base):
    __tablename__ = "verification_tokens"

    # Stored value (prefix + hex); the primary key makes it unique
    token: Mapped[str] = mapped_column(
        String(100),
        primary_key=True,
    )

    # The email address the token was issued for
    identifier: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
