"""
Supplier model: a company that bids on tenders.

Created during SUPPLIER_USER registration and owned by exactly one User
(owner_user_id is UNIQUE). The (legal_name, tin) pair identifies a company;
a second registration for the same company is rejected with 409.

KYC status starts PENDING and moves to VERIFIED or REJECTED through the
commission's document review, which is outside this service.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from egp_api.database import Base


class KycStatus(str, enum.Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class Supplier(Base):
    __tablename__ = "suppliers"
    __table_args__ = (
        UniqueConstraint("legal_name", "tin", name="uq_suppliers_legal_name_tin"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    legal_name: Mapped[str] = mapped_column(String(255), nullable=False)
    trading_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Taxpayer identification number
    tin: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Procurement categories the supplier trades in, e.g. ["IT", "Construction"]
    categories: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )

    kyc_status: Mapped[KycStatus] = mapped_column(
        Enum(KycStatus),
        default=KycStatus.PENDING,
        nullable=False,
    )

    # Foreign key to User: UNIQUE enforces the one-to-one relationship
    owner_user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
    )

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
    owner: Mapped["User"] = relationship(
        back_populates="owned_supplier",
    )
