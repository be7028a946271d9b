"""
Database connection and session management.
Uses SQLAlchemy async with PostgreSQL (asyncpg) or SQLite (aiosqlite).
"""

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from mediavault.config import settings


# Convert sync URL to async URL if needed
def get_async_url(url: str) -> str:
    """Convert a database URL to its async driver format."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE rules unless this is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_from_url(url: str, **kwargs) -> AsyncEngine:
    """
    Build an async engine for a database URL.

    Postgres connections are health-checked on checkout; SQLite connections
    get foreign key enforcement so share and record cascades behave the same
    on both backends.
    """
    async_url = get_async_url(url)
    if not async_url.startswith("sqlite"):
        kwargs.setdefault("pool_pre_ping", True)

    async_engine = create_async_engine(async_url, **kwargs)
    if async_engine.dialect.name == "sqlite":
        event.listen(async_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return async_engine


# Create async engine
engine = create_engine_from_url(settings.database_url, echo=settings.debug)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session; one transaction per request."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create any missing tables."""
    # Register every model on Base.metadata
    import mediavault.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
