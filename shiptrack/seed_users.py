"""
Database seeding script for initial users.

Creates the ADMIN and AGENT accounts, which cannot be registered through the
API. Run this script after the database is set up but before first use.

    python -m shiptrack.seed_users
"""

import asyncio
import logging

from sqlalchemy import select

from shiptrack.app.core.config import settings
from shiptrack.app.core.logging_config import setup_logging
from shiptrack.app.core.security import get_password_hash
from shiptrack.app.db.session import AsyncSessionLocal, engine, Base
from shiptrack.app.models.enums import UserRole
from shiptrack.app.models.user import User
from shiptrack.app.models.audit_log import AuditLog
from shiptrack.app.models.shipment import Shipment

logger = logging.getLogger(__name__)

SEED_USERS = [
    {
        "full_name": "Operations Admin",
        "email": "admin@shiptrack.in",
        "phone": "9000000001",
        "password": "Admin@1234",
        "role": UserRole.ADMIN,
    },
    {
        "full_name": "Delivery Agent",
        "email": "agent@shiptrack.in",
        "phone": "9000000002",
        "password": "Agent@1234",
        "role": UserRole.AGENT,
    },
]


async def seed_users():
    """
    Seed initial users with staff roles.

    Existing accounts (matched by email) are left untouched.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        logger.info("Starting user seeding...")

        for seed in SEED_USERS:
            result = await db.execute(select(User).where(User.email == seed["email"]))
            if result.scalar_one_or_none():
                logger.info("%s user %s already exists, skipping", seed["role"].value, seed["email"])
                continue

            db.add(User(
                full_name=seed["full_name"],
                email=seed["email"],
                phone=seed["phone"],
                hashed_password=get_password_hash(seed["password"]),
                role=seed["role"],
                is_active=True,
                is_email_verified=True,
            ))
            logger.info("Created %s user (email: %s, password: %s)", seed["role"].value, seed["email"], seed["password"])

        await db.commit()

    await engine.dispose()
    logger.info("User seeding completed")


if __name__ == "__main__":
    setup_logging(settings.log_level)
    asyncio.run(seed_users())
