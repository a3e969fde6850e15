#!/usr/bin/env python3
"""
Demo seed script — populates the database with sample tenants and users.

!! NOT FOR PRODUCTION !!
This script creates users with known passwords. It is intended ONLY for
local demos and frontend development.

Usage:
    # Seed the database configured by DATABASE_URL:
    python -m demo.seed

    # Drop and recreate all tables first:
    python -m demo.seed --reset

Login credentials after seeding:
    ┌──────────────┬──────────────────┬──────────────┬───────────────────────┐
    │ Username     │ Password         │ Role         │ Organization          │
    ├──────────────┼──────────────────┼──────────────┼───────────────────────┤
    │ sysadmin     │ SysAdminDemo1!   │ system_admin │ poolops-admin         │
    │ dana         │ DanaDemo123!     │ org_admin    │ blue-lagoon-pools     │
    │ tom          │ TomDemo123!      │ technician   │ blue-lagoon-pools     │
    │ legacy.lee   │ legacy-pass      │ office_staff │ blue-lagoon-pools (*) │
    └──────────────┴──────────────────┴──────────────┴───────────────────────┘
    (*) stored as a legacy plaintext password; upgraded to Argon2 on first login
"""

import argparse
import asyncio

from sqlalchemy import select

from app.database import AsyncSessionLocal, Base, engine
from app.models import AuthProvider, Organization, User, UserRole
from app.security import hash_password

ORGANIZATIONS = [
    {"name": "PoolOps Administration", "slug": "poolops-admin", "is_system_admin": True},
    {"name": "Blue Lagoon Pools", "slug": "blue-lagoon-pools", "is_system_admin": False},
]

USERS = [
    {
        "username": "sysadmin",
        "email": "sysadmin@poolops.example.com",
        "name": "System Admin",
        "password": "SysAdminDemo1!",
        "role": UserRole.SYSTEM_ADMIN,
        "org": "poolops-admin",
    },
    {
        "username": "dana",
        "email": "dana@bluelagoon.example.com",
        "name": "Dana Reyes",
        "password": "DanaDemo123!",
        "role": UserRole.ORG_ADMIN,
        "org": "blue-lagoon-pools",
    },
    {
        "username": "tom",
        "email": "tom@bluelagoon.example.com",
        "name": "Tom Okafor",
        "password": "TomDemo123!",
        "role": UserRole.TECHNICIAN,
        "org": "blue-lagoon-pools",
    },
    {
        "username": "legacy.lee",
        "email": "lee@bluelagoon.example.com",
        "name": "Lee Park",
        "password": "legacy-pass",
        "legacy": True,
        "role": UserRole.OFFICE_STAFF,
        "org": "blue-lagoon-pools",
    },
]


async def seed(reset: bool) -> None:
    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        organizations: dict[str, Organization] = {}
        for data in ORGANIZATIONS:
            result = await session.execute(
                select(Organization).where(Organization.slug == data["slug"])
            )
            organization = result.scalar_one_or_none()
            if organization is None:
                organization = Organization(**data)
                session.add(organization)
                await session.flush()
                print(f"  + organization {data['slug']}")
            organizations[data["slug"]] = organization

        for data in USERS:
            result = await session.execute(select(User).where(User.username == data["username"]))
            if result.scalar_one_or_none() is not None:
                print(f"  = user {data['username']} already exists")
                continue
            session.add(User(
                username=data["username"],
                email=data["email"],
                name=data["name"],
                hashed_password=data["password"] if data.get("legacy") else hash_password(data["password"]),
                role=data["role"],
                organization_id=organizations[data["org"]].id,
                auth_provider=AuthProvider.LOCAL,
            ))
            print(f"  + user {data['username']} ({data['role'].value})")

        await session.commit()
    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo tenants and users")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before seeding")
    args = parser.parse_args()

    print("Seeding demo data...")
    asyncio.run(seed(args.reset))
    print("Done.")


if __name__ == "__main__":
    main()
