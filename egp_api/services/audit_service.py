"""Audit logging service.

Records append-only audit entries for identity lifecycle events and lets
administrators and auditors page through them.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from egp_api.models.audit_log import AuditAction, AuditLogEntry
from egp_api.request_info import ClientInfo


async def record(
    db: AsyncSession,
    *,
    action: AuditAction,
    actor_user_id: uuid.UUID | None,
    entity_id: uuid.UUID | str,
    client: ClientInfo,
    entity_type: str = "User",
    **payload,
) -> AuditLogEntry:
    """Add an audit entry to the caller's transaction.

    The entry is flushed but not committed: it becomes durable together
    with the change it documents, or not at all.

    Args:
        db: The database session.
        action: The action performed.
        actor_user_id: The user who performed it, if known.
        entity_id: ID of the affected record.
        client: IP and user agent of the request.
        entity_type: Type of the affected record.
        **payload: Extra context (email, role, method, ...).

    Returns:
        The pending AuditLogEntry.
    """
    entry = AuditLogEntry(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        payload={
            **{key: _jsonable(value) for key, value in payload.items()},
            "ip": client.ip,
            "userAgent": client.user_agent,
        },
        ip=client.ip,
        user_agent=client.user_agent,
    )
    db.add(entry)
    await db.flush()
    return entry


async def query_audit_logs(
    db: AsyncSession,
    *,
    actor_user_id: uuid.UUID | None = None,
    action: AuditAction | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[AuditLogEntry], int]:
    """Query audit entries, newest first, with optional filters.

    Timezone-aware bounds are converted to UTC first; entries are stored in
    UTC and SQLite compares the stored text without its offset.

    Returns:
        Tuple of (entries on the requested page, total matching count).
    """
    filters = []
    if actor_user_id is not None:
        filters.append(AuditLogEntry.actor_user_id == actor_user_id)
    if action is not None:
        filters.append(AuditLogEntry.action == action)
    if start_time is not None:
        filters.append(AuditLogEntry.created_at >= _as_utc(start_time))
    if end_time is not None:
        filters.append(AuditLogEntry.created_at <= _as_utc(end_time))

    total = (
        await db.execute(select(func.count(AuditLogEntry.id)).where(*filters))
    ).scalar_one()

    result = await db.execute(
        select(AuditLogEntry)
        .where(*filters)
        .order_by(AuditLogEntry.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


def _as_utc(value: datetime) -> datetime:
    """Aware datetimes become UTC; naive ones are taken to be UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)


def _jsonable(value):
    if isinstance(value, uuid.UUID):
        return str(value)
    if hasattr(value, "value"):  # enums
        return value.value
    return value
