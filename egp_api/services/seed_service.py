"""
Reference data seeding.

Creates the government agencies every deployment starts with and a verified
NPC administrator. Safe to run repeatedly: existing agencies and an existing
admin account are left untouched.

Used by demo/seed.py and by the test suite.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from egp_api.models.agency import AgencyType
from egp_api.models.user import UserRole
from egp_api.security import hash_password
from egp_api.services import credential_store
from egp_api.services.token_service import utc_now

REFERENCE_AGENCIES = [
    {
        "code": "NPC",
        "name": "National Procurement Commission",
        "agency_type": AgencyType.AUTHORITY,
        "address": "Port Moresby, NCD",
        "contact_email": "info@npc.gov.pg",
    },
    {
        "code": "DOH",
        "name": "Department of Health",
        "agency_type": AgencyType.MINISTRY,
        "address": "Port Moresby, NCD",
        "contact_email": "procurement@health.gov.pg",
    },
    {
        "code": "DOE",
        "name": "Department of Education",
        "agency_type": AgencyType.MINISTRY,
        "address": "Port Moresby, NCD",
        "contact_email": "procurement@education.gov.pg",
    },
    {
        "code": "DOT",
        "name": "Department of Transport",
        "agency_type": AgencyType.MINISTRY,
        "address": "Port Moresby, NCD",
        "contact_email": "procurement@transport.gov.pg",
    },
    {
        "code": "PNGPCL",
        "name": "PNG Power Limited",
        "agency_type": AgencyType.SOE,
        "address": "Port Moresby, NCD",
        "contact_email": "procurement@pngpower.com.pg",
    },
]

ADMIN_EMAIL = "admin@npc.gov.pg"
ADMIN_FULL_NAME = "NPC System Administrator"
ADMIN_POSITION = "System Administrator"
DEFAULT_ADMIN_PASSWORD = "TestAdmin123!"


@dataclass
class SeedResult:
    agencies_created: list[str]
    admin_created: bool


async def seed_reference_data(
    db: AsyncSession, admin_password: str = DEFAULT_ADMIN_PASSWORD
) -> SeedResult:
    """
    Create the reference agencies and the NPC admin if they are missing.

    The admin is created already verified and attached to the NPC agency.
    Changes are committed before returning.
    """
    created = []
    agencies = {}
    for agency in REFERENCE_AGENCIES:
        existing = await credential_store.get_agency_by_code(db, agency["code"])
        if existing is None:
            existing = await credential_store.create_agency_if_absent(
                db,
                agency["code"],
                name=agency["name"],
                agency_type=agency["agency_type"],
                address=agency["address"],
                contact_email=agency["contact_email"],
            )
            created.append(agency["code"])
        agencies[agency["code"]] = existing

    admin_created = False
    if await credential_store.find_by_email(db, ADMIN_EMAIL) is None:
        admin = await credential_store.create_user(
            db,
            email=ADMIN_EMAIL,
            password_hash=hash_password(admin_password),
            full_name=ADMIN_FULL_NAME,
            role=UserRole.NPC_ADMIN,
            position=ADMIN_POSITION,
        )
        await credential_store.attach_user_to_agency(db, admin, agencies["NPC"])
        await credential_store.mark_email_verified(db, admin.id, utc_now())
        admin_created = True

    await db.commit()
    logger.info(
        f"Reference data seeded: {len(created)} agencies created, "
        f"admin {'created' if admin_created else 'already present'}"
    )
    return SeedResult(agencies_created=created, admin_created=admin_created)
