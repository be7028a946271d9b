#!/usr/bin/env python3
"""
Clean up expired and consumed verification/reset tokens.

Should be run periodically (e.g., daily cron job) to keep the
auth_tokens table lean.

Usage:
    python scripts/cleanup_tokens.py
    python scripts/cleanup_tokens.py --stats
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediavault.config import get_settings
from mediavault.core.time import utcnow
from mediavault.db.database import create_engine_from_url
from mediavault.db.models import AuthTokenModel

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _stale(now: datetime):
    return or_(AuthTokenModel.consumed_at.is_not(None), AuthTokenModel.expires_at <= now)


async def get_token_stats(session: AsyncSession, now: datetime) -> dict:
    """Count tokens by state and purpose."""
    total = await session.scalar(select(func.count()).select_from(AuthTokenModel))
    stale = await session.scalar(
        select(func.count()).select_from(AuthTokenModel).where(_stale(now))
    )
    result = await session.execute(
        select(AuthTokenModel.purpose, func.count())
        .where(~_stale(now))
        .group_by(AuthTokenModel.purpose)
    )
    return {
        "total_tokens": total or 0,
        "stale_tokens": stale or 0,
        "active_tokens": (total or 0) - (stale or 0),
        "active_by_purpose": {purpose: count for purpose, count in result.all()},
    }


async def cleanup_tokens(session: AsyncSession, now: datetime) -> int:
    """Delete consumed and expired tokens."""
    result = await session.execute(delete(AuthTokenModel).where(_stale(now)))
    return result.rowcount


async def main_async(stats_only: bool = False) -> None:
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
        now = utcnow()
        stats = await get_token_stats(session, now)

        logger.info("Auth Token Statistics:")
        logger.info(f"  Total tokens: {stats['total_tokens']:,}")
        logger.info(f"  Active tokens: {stats['active_tokens']:,}")
        logger.info(f"  Expired or consumed: {stats['stale_tokens']:,}")
        for purpose, count in sorted(stats["active_by_purpose"].items()):
            logger.info(f"  Active {purpose}: {count:,}")

        if stats_only:
            return

        if stats["stale_tokens"] == 0:
            logger.info("No stale tokens to clean up.")
            return

        deleted = await cleanup_tokens(session, now)
        await session.commit()
        logger.info(f"Cleaned up {deleted:,} stale tokens.")

    await engine.dispose()


def main():
    parser = argparse.ArgumentParser(
        description="Clean up expired and consumed auth tokens"
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Only show statistics, don't clean up",
    )

    args = parser.parse_args()
    asyncio.run(main_async(stats_only=args.stats))


if __name__ == "__main__":
    main()
