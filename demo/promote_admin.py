#!/usr/bin/env python3
"""One-time script to change a user's role. Run on the server.

Usage:
    python demo/promote_admin.py someone@npc.gov.pg
    python demo/promote_admin.py auditor@npc.gov.pg --role AUDITOR
"""
import argparse
import asyncio

from sqlalchemy import update

from egp_api.database import AsyncSessionLocal, engine
from egp_api.models.user import User, UserRole


async def promote(email: str, role: UserRole):
    async with AsyncSessionLocal() as s:
        r = await s.execute(
            update(User)
            .where(User.email == email.lower())
            .values(role=role)
        )
        await s.commit()
        print(f"Rows updated: {r.rowcount}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("email")
    parser.add_argument(
        "--role",
        choices=[UserRole.NPC_ADMIN.value, UserRole.AUDITOR.value],
        default=UserRole.NPC_ADMIN.value,
    )
    args = parser.parse_args()
    asyncio.run(promote(args.email, UserRole(args.role)))
