"""
Admin service: read-only registration statistics for NPC administrators.
"""

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from egp_api.models.user import User, UserRole, UserStatus

RECENT_REGISTRATIONS_LIMIT = 10


@dataclass
class RegistrationStats:
    total: int
    by_role: dict[str, int]
    recent: list[User]


async def registration_stats(db: AsyncSession) -> RegistrationStats:
    """
    Count active users overall and per role, plus the latest registrations.

    Every role appears in by_role, with 0 when it has no users.
    """
    total = (
        await db.execute(
            select(func.count(User.id)).where(User.status == UserStatus.ACTIVE)
        )
    ).scalar_one()

    rows = await db.execute(
        select(User.role, func.count(User.id))
        .where(User.status == UserStatus.ACTIVE)
        .group_by(User.role)
    )
    by_role = {role.value: 0 for role in UserRole}
    for role, count in rows.all():
        by_role[role.value] = count

    recent = await db.execute(
        select(User)
        .where(User.status == UserStatus.ACTIVE)
        .order_by(User.created_at.desc())
        .limit(RECENT_REGISTRATIONS_LIMIT)
    )

    return RegistrationStats(total=total, by_role=by_role, recent=list(recent.scalars().all()))
