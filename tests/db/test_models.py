"""
Database model tests.
Tests column defaults and constraints.
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from mediavault.core.time import utcnow
from mediavault.db.database import get_async_url
from mediavault.db.models import (
    AuthTokenModel,
    FolderModel,
    FolderShareModel,
    MedicalBillModel,
    MedicalDocumentModel,
    MedicalPersonModel,
    MedicalPrescriptionModel,
    RoleModel,
    UserMediaModel,
    UserModel,
)


def make_user(name: str) -> UserModel:
    return UserModel(email=f"{name}@example.com", username=name, password_hash="hashed")


class TestUserModel:
    """Tests for UserModel."""

    @pytest.mark.asyncio
    async def test_user_default_values(self, db_session):
        user = make_user("alice")
        db_session.add(user)
        await db_session.flush()

        assert user.id
        assert user.is_active is True
        assert user.email_verified is False
        assert user.failed_login_attempts == 0
        assert user.locked_until is None
        assert user.created_at is not None

    @pytest.mark.asyncio
    async def test_email_unique(self, db_session):
        db_session.add(make_user("alice"))
        await db_session.flush()

        duplicate = make_user("alice2")
        duplicate.email = "alice@example.com"
        db_session.add(duplicate)
        with pytest.raises(IntegrityError):
            await db_session.flush()

    @pytest.mark.asyncio
    async def test_role_name_unique(self, db_session):
        db_session.add(RoleModel(name="admin"))
        await db_session.flush()

        db_session.add(RoleModel(name="admin"))
        with pytest.raises(IntegrityError):
            await db_session.flush()

    @pytest.mark.asyncio
    async def test_token_hash_unique(self, db_session, test_user):
        now = utcnow()
        for _ in range(2):
            db_session.add(
                AuthTokenModel(
                    user_id=test_user.id,
                    purpose="password_reset",
                    token_hash="a" * 64,
                    created_at=now,
                    expires_at=now + timedelta(hours=1),
                )
            )
        with pytest.raises(IntegrityError):
            await db_session.flush()


class TestFolderModels:
    """Tests for FolderModel and FolderShareModel."""

    @pytest.mark.asyncio
    async def test_share_defaults(self, db_session, test_user, other_user):
        folder = FolderModel(user_id=test_user.id, name="Root")
        db_session.add(folder)
        await db_session.flush()

        share = FolderShareModel(
            folder_id=folder.id,
            owner_user_id=test_user.id,
            shared_with_user_id=other_user.id,
        )
        db_session.add(share)
        await db_session.flush()

        assert folder.parent_folder_id is None
        assert share.permission_level == "read_only"
        assert share.include_subfolders is True

    @pytest.mark.asyncio
    async def test_one_share_per_target(self, db_session, test_user, other_user):
        folder = FolderModel(user_id=test_user.id, name="Root")
        db_session.add(folder)
        await db_session.flush()

        for _ in range(2):
            db_session.add(
                FolderShareModel(
                    folder_id=folder.id,
                    owner_user_id=test_user.id,
                    shared_with_user_id=other_user.id,
                )
            )
        with pytest.raises(IntegrityError):
            await db_session.flush()

    @pytest.mark.asyncio
    async def test_self_share_rejected(self, db_session, test_user):
        folder = FolderModel(user_id=test_user.id, name="Root")
        db_session.add(folder)
        await db_session.flush()

        db_session.add(
            FolderShareModel(
                folder_id=folder.id,
                owner_user_id=test_user.id,
                shared_with_user_id=test_user.id,
            )
        )
        with pytest.raises(IntegrityError):
            await db_session.flush()


class TestMediaAndMedicalModels:
    """Tests for media and medical record defaults."""

    @pytest.mark.asyncio
    async def test_media_encrypted_by_default(self, db_session, test_user):
        media = UserMediaModel(
            user_id=test_user.id,
            file_name="a.png",
            file_path="media/u/a.png.enc",
            file_size=1,
            mime_type="image/png",
        )
        db_session.add(media)
        await db_session.flush()

        assert media.is_encrypted is True
        assert media.folder_id is None

    @pytest.mark.asyncio
    async def test_medical_defaults(self, db_session):
        person = MedicalPersonModel(name="Grandma")
        db_session.add(person)
        await db_session.flush()

        document = MedicalDocumentModel(person_id=person.id, title="Note")
        bill = MedicalBillModel(person_id=person.id, total_amount=Decimal("10.00"))
        prescription = MedicalPrescriptionModel(person_id=person.id, medication_name="Aspirin")
        db_session.add_all([document, bill, prescription])
        await db_session.flush()

        assert document.document_type == "file"
        assert document.is_encrypted is True
        assert bill.source == "manual"
        assert bill.provider_id is None
        assert prescription.is_active is True


class TestForeignKeys:
    """Cascades are enforced on SQLite too."""

    @pytest.mark.asyncio
    async def test_deleting_user_removes_folders(self, db_session, other_user):
        db_session.add(FolderModel(user_id=other_user.id, name="Root"))
        await db_session.flush()

        await db_session.execute(delete(UserModel).where(UserModel.id == other_user.id))

        remaining = await db_session.scalar(
            select(func.count()).select_from(FolderModel).where(FolderModel.user_id == other_user.id)
        )
        assert remaining == 0

    @pytest.mark.asyncio
    async def test_unknown_owner_rejected(self, db_session):
        db_session.add(FolderModel(user_id="no-such-user", name="Orphan"))
        with pytest.raises(IntegrityError):
            await db_session.flush()


class TestAsyncUrl:
    def test_postgres_urls_use_asyncpg(self):
        assert get_async_url("postgresql://u:p@db/vault") == "postgresql+asyncpg://u:p@db/vault"
        assert get_async_url("postgresql+psycopg2://db/vault") == "postgresql+asyncpg://db/vault"

    def test_sqlite_urls_use_aiosqlite(self):
        assert get_async_url("sqlite:///./vault.db") == "sqlite+aiosqlite:///./vault.db"

    def test_async_urls_unchanged(self):
        assert get_async_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"
