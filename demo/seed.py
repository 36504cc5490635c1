#!/usr/bin/env python3
"""
Demo seed script: populates the database with reference data and demo users.

!! NOT FOR PRODUCTION !!
This script creates users with known passwords. It is intended ONLY for
local demos and frontend development.

Steps:
  1. Reference agencies (NPC, DOH, DOE, DOT, PNGPCL) and the NPC admin are
     written directly to DATABASE_URL
  2. Demo suppliers and buyers are registered through the running API
  3. Their emails are marked verified directly in the database (the demo has
     no inbox to click links from)

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

    # Reference data only (no server needed):
    python demo/seed.py --reference-only

Login credentials after seeding:
    ┌──────────────────────────────┬───────────────────┬───────────────┐
    │ Email                        │ Password          │ Role          │
    ├──────────────────────────────┼───────────────────┼───────────────┤
    │ admin@npc.gov.pg             │ TestAdmin123!     │ NPC_ADMIN     │
    │ grace.kaupa@health.gov.pg    │ BuyerDemo123!     │ AGENCY_BUYER  │
    │ john.wari@education.gov.pg   │ BuyerDemo123!     │ AGENCY_BUYER  │
    │ kila@morea-holdings.com.pg   │ SupplierDemo123!  │ SUPPLIER_USER │
    │ sales@highlands-med.com.pg   │ SupplierDemo123!  │ SUPPLIER_USER │
    └──────────────────────────────┴───────────────────┴───────────────┘
"""

import argparse
import asyncio
import sys

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo users
# ---------------------------------------------------------------------------

BUYERS = [
    {
        "role": "AGENCY_BUYER",
        "fullName": "Grace Kaupa",
        "email": "grace.kaupa@health.gov.pg",
        "password": "BuyerDemo123!",
        "agencyCode": "DOH",
        "agencyName": "Department of Health",
        "agencyType": "MINISTRY",
        "position": "Senior Procurement Officer",
    },
    {
        "role": "AGENCY_BUYER",
        "fullName": "John Wari",
        "email": "john.wari@education.gov.pg",
        "password": "BuyerDemo123!",
        "agencyCode": "DOE",
        "agencyName": "Department of Education",
        "agencyType": "MINISTRY",
        "position": "Procurement Manager",
    },
]

SUPPLIERS = [
    {
        "role": "SUPPLIER_USER",
        "fullName": "Kila Morea",
        "email": "kila@morea-holdings.com.pg",
        "password": "SupplierDemo123!",
        "legalName": "Morea Holdings Ltd",
        "tradingName": "Morea Construction",
        "tin": "501234567",
        "address": "Section 12, Lot 4, Lae",
        "categories": ["construction", "civil works"],
    },
    {
        "role": "SUPPLIER_USER",
        "fullName": "Ruth Yama",
        "email": "sales@highlands-med.com.pg",
        "password": "SupplierDemo123!",
        "legalName": "Highlands Medical Supplies Ltd",
        "tin": "502987654",
        "address": "Okuk Highway, Mount Hagen",
        "categories": ["medical supplies", "pharmaceuticals"],
    },
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


async def register(client: httpx.AsyncClient, user: dict) -> bool:
    """Register a user through the API. Returns False if they already exist."""
    resp = await client.post(
        f"{BASE_URL}/auth/register",
        json={**user, "confirmPassword": user["password"]},
    )
    if resp.status_code == 409:
        return False
    resp.raise_for_status()
    return True


async def seed_reference() -> None:
    """Create the reference agencies and the NPC admin directly in the DB."""
    from egp_api.database import AsyncSessionLocal, Base, engine, ensure_sqlite_directory
    from egp_api.services.seed_service import ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, seed_reference_data
    import egp_api.models  # noqa: F401

    ensure_sqlite_directory()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        result = await seed_reference_data(session)

    created = ", ".join(result.agencies_created) or "none (already present)"
    log(f"Agencies created: {created}")
    log(f"Admin: {ADMIN_EMAIL} / {DEFAULT_ADMIN_PASSWORD}")


async def mark_verified(emails: list[str]) -> None:
    """Verify demo users directly in the database, skipping the email link."""
    from egp_api.database import AsyncSessionLocal
    from egp_api.services import credential_store
    from egp_api.services.token_service import utc_now

    async with AsyncSessionLocal() as session:
        for email in emails:
            user = await credential_store.find_by_email(session, email)
            if user is not None:
                await credential_store.mark_email_verified(session, user.id, utc_now())
        await session.commit()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str, reference_only: bool) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED: NOT FOR PRODUCTION")
    print("========================================\n")

    print("Seeding reference data...")
    await seed_reference()

    if reference_only:
        print("\nDone.\n")
        return

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn egp_api.main:app --reload\n")
            sys.exit(1)

        for user in BUYERS + SUPPLIERS:
            print(f"\nRegistering {user['fullName']} ({user['role']})...")
            if await register(client, user):
                log(f"Login: {user['email']} / {user['password']}")
            else:
                log("Already registered, skipped")

    await mark_verified([user["email"] for user in BUYERS + SUPPLIERS])
    print("\nAll demo users verified.\nDone.\n")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the e-GP identity API with demo data")
    parser.add_argument("--base-url", default=BASE_URL, help="API server URL")
    parser.add_argument(
        "--reference-only",
        action="store_true",
        help="Only create the reference agencies and admin",
    )
    args = parser.parse_args()
    asyncio.run(seed(args.base_url, args.reference_only))


if __name__ == "__main__":
    main()
