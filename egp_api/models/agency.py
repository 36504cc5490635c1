"""
Agency model: a government procurement entity.

Agencies are identified by a short unique code (e.g. "DOH"). Registration
of an agency buyer reuses the Agency with the submitted code if it exists,
and creates it otherwise, so many buyers can belong to one agency.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from egp_api.database import Base


class AgencyType(str, enum.Enum):
    MINISTRY = "MINISTRY"
    AUTHORITY = "AUTHORITY"
    SOE = "SOE"                # State-owned enterprise
    PROVINCIAL = "PROVINCIAL"


class Agency(Base):
    __tablename__ = "agencies"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )

    type: Mapped[AgencyType] = mapped_column(
        Enum(AgencyType),
        default=AgencyType.MINISTRY,
        nullable=False,
    )

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

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
    users: Mapped[list["User"]] = relationship(
        back_populates="agency",
    )
