#!/usr/bin/env python3
"""
Grant a role (``admin`` by default) to an existing user.

The role is created if it does not exist yet.

Usage:
    python scripts/create_admin.py alice@example.com
    python scripts/create_admin.py alice --role medical
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediavault.config import get_settings
from mediavault.db.database import create_engine_from_url
from mediavault.db.models import UserModel
from mediavault.services.user_service import UserService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def grant_role(session: AsyncSession, identifier: str, role_name: str) -> bool:
    """
    Grant ``role_name`` to the user with the given email or username.

    Returns:
        False if the user does not exist
    """
    result = await session.execute(
        select(UserModel).where(
            or_(UserModel.email == identifier.lower(), UserModel.username == identifier)
        )
    )
    user = result.scalar_one_or_none()
    if user is None:
        logger.error(f"No user found for {identifier!r}")
        return False

    users = UserService(session)
    role = await users.get_role_by_name(role_name)
    if role is None:
        role = await users.create_role(role_name)
        logger.info(f"Created role {role.name}")

    if await users.assign_role(user.id, role.id):
        logger.info(f"Granted {role.name} to {user.username} ({user.email})")
    else:
        logger.info(f"{user.username} already has {role.name}")
    return True


async def main_async(identifier: str, role_name: str) -> int:
    """Main async function."""
    settings = get_settings()
    engine = create_engine_from_url(
        settings.database_url,
        echo=False,
    )
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        granted = await grant_role(session, identifier, role_name)
        await session.commit()

    await engine.dispose()
    return 0 if granted else 1


def main():
    parser = argparse.ArgumentParser(description="Grant a role to an existing user")
    parser.add_argument("identifier", help="Email or username of the user")
    parser.add_argument("--role", default="admin", help="Role to grant (default: admin)")

    args = parser.parse_args()
    sys.exit(asyncio.run(main_async(args.identifier, args.role)))


if __name__ == "__main__":
    main()
