"""
Shared test fixtures and configuration for pytest.
"""

import base64
import os
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment before importing application modules
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["SESSION_SECRET_KEY"] = "test-session-secret-for-testing-only"
os.environ["ENCRYPTION_KEY"] = base64.b64encode(b"k" * 32).decode("ascii")
os.environ["SMTP_HOST"] = ""

from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from mediavault.main import app
from mediavault.config import settings
from mediavault.core.auth import hash_password, create_access_token
from mediavault.db.database import Base, create_engine_from_url, get_db_session
from mediavault.db.models import RoleModel, UserModel, UserRoleModel
from mediavault.services.email_service import EmailService, get_email_service


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "testpassword123"


class RecordingEmailService(EmailService):
    """Email service that records messages instead of sending them."""

    def __init__(self):
        super().__init__(smtp_host="", app_url="http://test")
        self.sent: list[dict] = []

    def send(self, to_email, subject, html_content, text_content=None) -> bool:
        self.sent.append(
            {
                "to": to_email,
                "subject": subject,
                "html": html_content,
                "text": text_content,
            }
        )
        return True

    def token_for(self, to_email: str) -> Optional[str]:
        """Extract the token from the last link mailed to an address."""
        for message in reversed(self.sent):
            if message["to"] == to_email:
                return message["text"].split("token=", 1)[1].split()[0]
        return None


@pytest.fixture
async def async_engine():
    """Create async test database engine."""
    engine = create_engine_from_url(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mock_db_session():
    """Create a mock database session for unit tests."""
    session = AsyncMock(spec=AsyncSession)
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    return session


@pytest.fixture
def email_outbox() -> RecordingEmailService:
    """Email service stub collecting outgoing messages."""
    return RecordingEmailService()


@pytest.fixture
def media_root(tmp_path, monkeypatch):
    """Point encrypted file storage at a temporary directory."""
    root = tmp_path / "uploads"
    root.mkdir()
    monkeypatch.setattr(settings, "upload_dir", str(root))
    return root


@pytest.fixture
async def test_client(db_session, email_outbox) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database and email overrides."""

    async def override_get_db_session():
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_email_service] = lambda: email_outbox

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============ User Fixtures ============

@pytest.fixture
def test_password() -> str:
    """Plain password given to users made by create_user."""
    return TEST_PASSWORD


@pytest.fixture
def create_user(db_session):
    """Factory creating users directly in the database."""

    async def _create_user(
        username: str,
        email: Optional[str] = None,
        password: str = TEST_PASSWORD,
        email_verified: bool = True,
        is_active: bool = True,
        roles: tuple[str, ...] = (),
    ) -> UserModel:
        user = UserModel(
            email=email or f"{username}@example.com",
            username=username,
            password_hash=hash_password(password),
            is_active=is_active,
            email_verified=email_verified,
            failed_login_attempts=0,
        )
        db_session.add(user)
        await db_session.flush()
        for role_name in roles:
            await grant_role(db_session, user, role_name)
        return user

    return _create_user


async def grant_role(session: AsyncSession, user: UserModel, role_name: str) -> RoleModel:
    """Attach a role to a user, creating the role when needed."""
    result = await session.execute(select(RoleModel).where(RoleModel.name == role_name))
    role = result.scalar_one_or_none()
    if role is None:
        role = RoleModel(name=role_name)
        session.add(role)
        await session.flush()
    session.add(UserRoleModel(user_id=user.id, role_id=role.id))
    await session.flush()
    return role


@pytest.fixture
async def test_user(create_user) -> UserModel:
    """A verified user (alice)."""
    return await create_user("alice")


@pytest.fixture
async def other_user(create_user) -> UserModel:
    """A second verified user (bob)."""
    return await create_user("bob")


def bearer_headers(user: UserModel) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


@pytest.fixture
def headers_for():
    """Build bearer headers for any user."""
    return bearer_headers


@pytest.fixture
def auth_headers(test_user) -> dict:
    """Authorization headers with test user token."""
    return bearer_headers(test_user)


@pytest.fixture
def other_headers(other_user) -> dict:
    """Authorization headers for the second user."""
    return bearer_headers(other_user)
