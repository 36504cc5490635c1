"""Pydantic schemas for the /admin endpoints."""

import uuid
from datetime import datetime
from typing import Any

from egp_api.models.audit_log import AuditAction
from egp_api.models.user import UserRole
from egp_api.schemas.common import CamelModel


class RecentRegistration(CamelModel):
    id: uuid.UUID
    email: str
    full_name: str
    role: UserRole
    email_verified_at: datetime | None = None
    created_at: datetime


class RegistrationStatsResponse(CamelModel):
    """Response body for GET /admin/registrations."""
    total: int
    by_role: dict[str, int]
    recent: list[RecentRegistration]


class AuditLogResponse(CamelModel):
    id: uuid.UUID
    actor_user_id: uuid.UUID | None = None
    action: AuditAction
    entity_type: str
    entity_id: str
    payload: dict[str, Any]
    ip: str | None = None
    user_agent: str | None = None
    created_at: datetime


class AuditLogPage(CamelModel):
    """Response body for GET /admin/audit-logs."""
    items: list[AuditLogResponse]
    total: int
    page: int
    page_size: int
