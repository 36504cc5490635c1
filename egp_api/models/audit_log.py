"""
AuditLogEntry model: immutable record of security-relevant actions.

One entry is written per significant identity event (registration,
verification, password reset, sign-in). Entries are append-only: the ORM
refuses to update or delete them once persisted.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, String, DateTime, Enum, ForeignKey, event
from sqlalchemy.orm import Mapped, mapped_column

from egp_api.database import Base


class AuditAction(str, enum.Enum):
    USER_REGISTERED = "USER_REGISTERED"
    EMAIL_VERIFIED = "EMAIL_VERIFIED"
    VERIFICATION_EMAIL_RESENT = "VERIFICATION_EMAIL_RESENT"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET_COMPLETED = "PASSWORD_RESET_COMPLETED"
    USER_SIGNED_IN = "USER_SIGNED_IN"
    USER_SIGNED_OUT = "USER_SIGNED_OUT"


class AuditLogEntry(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
        index=True,
    )

    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction),
        nullable=False,
        index=True,
    )

    # The record the action applies to, e.g. ("User", "<uuid>")
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Free-form context: email, role, method, ip, user agent
    payload: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    # IPv6 addresses are at most 45 characters
    ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )


@event.listens_for(AuditLogEntry, "before_update")
def _reject_update(mapper, connection, target):
    raise ValueError("Audit log entries are append-only")


@event.listens_for(AuditLogEntry, "before_delete")
def _reject_delete(mapper, connection, target):
    raise ValueError("Audit log entries are append-only")
