"""
User model: the authentication identity.

Each User represents a login credential (email + hashed password) with a
fixed role in the procurement system. Role-specific organisations live in
their own tables:

  - AGENCY_BUYER users belong to an Agency (many buyers per agency)
  - SUPPLIER_USER users own exactly one Supplier profile

User roles:
  - NPC_ADMIN: National Procurement Commission administrator
  - AGENCY_BUYER: Procurement officer at a government agency
  - SUPPLIER_USER: Representative of a registered supplier
  - AUDITOR: Read-only oversight (audit trail access)

Lifecycle:
  Created ACTIVE but unverified at registration. email_verified_at is set
  exactly once by the verification flow; password_hash changes only through
  the reset flow. Users are never hard-deleted; INACTIVE users cannot sign in
  and their tokens are treated as invalid.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from egp_api.database import Base


class UserRole(str, enum.Enum):
    """
    Defines the role a user holds within the procurement system.

    Inherits from str so the enum value serializes naturally to JSON
    and can be stored as a simple string in the database.
    """
    NPC_ADMIN = "NPC_ADMIN"          # Commission administrator
    AGENCY_BUYER = "AGENCY_BUYER"    # Government agency buyer
    SUPPLIER_USER = "SUPPLIER_USER"  # Supplier representative
    AUDITOR = "AUDITOR"              # Read-only oversight


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class User(Base):
    __tablename__ = "users"

    # Primary key: UUID provides globally unique IDs without sequential guessing
    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Email is the login identifier: must be unique and indexed for fast lookups
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    full_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    phone: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )

    # Job title, captured for agency buyers
    position: Mapped[str | None] = mapped_column(
        String(150),
        nullable=True,
    )

    # Argon2id hash of the password (never store plaintext!)
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole),
        nullable=False,
    )

    # Soft-disable: inactive users can't sign in but their data is preserved
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus),
        default=UserStatus.ACTIVE,
        nullable=False,
    )

    # Null until the email verification flow succeeds
    email_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    agency_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("agencies.id"),
        nullable=True,
        index=True,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    agency: Mapped["Agency"] = relationship(
        back_populates="users",
        lazy="selectin",
    )

    # One-to-one with Supplier (uselist=False means single object, not list)
    owned_supplier: Mapped["Supplier"] = relationship(
        back_populates="owner",
        uselist=False,
        lazy="selectin",
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @property
    def is_email_verified(self) -> bool:
        return self.email_verified_at is not None
