"""
Admin router: read-only oversight endpoints.

Endpoints:
  GET  /admin/registrations  Registration statistics      [NPC_ADMIN]
  GET  /admin/audit-logs     Paginated audit trail        [NPC_ADMIN, AUDITOR]

Nothing here modifies data. Accounts with these roles are provisioned by an
operator (see demo/promote_admin.py), never through self-registration.
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from egp_api.database import get_db
from egp_api.dependencies import require_roles
from egp_api.models.audit_log import AuditAction
from egp_api.models.user import UserRole
from egp_api.request_info import RequestContext
from egp_api.schemas.admin import (
    AuditLogPage,
    AuditLogResponse,
    RecentRegistration,
    RegistrationStatsResponse,
)
from egp_api.services import admin_service, audit_service

router = APIRouter()


@router.get(
    "/registrations",
    response_model=RegistrationStatsResponse,
    summary="[Admin] Registration statistics",
)
async def registration_stats(
    admin: RequestContext = Depends(require_roles(UserRole.NPC_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """
    Active user counts overall and per role, with the ten most recent
    registrations.
    """
    stats = await admin_service.registration_stats(db)
    return RegistrationStatsResponse(
        total=stats.total,
        by_role=stats.by_role,
        recent=[RecentRegistration.model_validate(user) for user in stats.recent],
    )


@router.get(
    "/audit-logs",
    response_model=AuditLogPage,
    summary="[Admin] List audit log entries",
)
async def list_audit_logs(
    actor_user_id: uuid.UUID | None = Query(None, alias="actorUserId"),
    action: AuditAction | None = Query(None),
    start_time: datetime | None = Query(None, alias="startTime"),
    end_time: datetime | None = Query(None, alias="endTime"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    reviewer: RequestContext = Depends(require_roles(UserRole.NPC_ADMIN, UserRole.AUDITOR)),
    db: AsyncSession = Depends(get_db),
):
    """
    The audit trail, newest first.

    Supports filtering by actor, action and time window, plus pagination.
    """
    entries, total = await audit_service.query_audit_logs(
        db,
        actor_user_id=actor_user_id,
        action=action,
        start_time=start_time,
        end_time=end_time,
        page=page,
        page_size=page_size,
    )
    return AuditLogPage(
        items=[AuditLogResponse.model_validate(entry) for entry in entries],
        total=total,
        page=page,
        page_size=page_size,
    )
