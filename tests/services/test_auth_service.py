"""
Service tests for registration, login lockout, email verification and
password reset.
"""

import pytest
from datetime import timedelta

from sqlalchemy import select

from mediavault.core.auth import hash_one_time_token, verify_password
from mediavault.core.exceptions import (
    AccountLocked,
    DuplicateEmail,
    DuplicateUsername,
    InvalidCredentials,
    TokenConsumed,
    TokenExpired,
    TokenNotFound,
    WeakPassword,
)
from mediavault.core.time import as_utc, utcnow
from mediavault.db.models import AuthTokenModel, UserModel
from mediavault.services.auth_service import AuthService, LoginResult


class TestRegister:
    """Tests for AuthService.register."""

    @pytest.mark.asyncio
    async def test_register_creates_unverified_user(self, db_session):
        user, token = await AuthService(db_session).register(
            "Alice@Example.com", "alice", "correct-horse"
        )

        assert user.email == "alice@example.com"
        assert user.email_verified is False
        assert user.is_active is True
        assert user.password_hash != "correct-horse"
        assert token

    @pytest.mark.asyncio
    async def test_register_weak_password(self, db_session):
        with pytest.raises(WeakPassword):
            await AuthService(db_session).register("a@example.com", "alice", "short")

        result = await db_session.execute(select(UserModel))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, db_session, test_user, test_password):
        with pytest.raises(DuplicateEmail):
            await AuthService(db_session).register(test_user.email.upper(), "newname", test_password)

    @pytest.mark.asyncio
    async def test_register_duplicate_username(self, db_session, test_user, test_password):
        with pytest.raises(DuplicateUsername):
            await AuthService(db_session).register("new@example.com", "ALICE", test_password)


class TestLogin:
    """Tests for AuthService.login."""

    @pytest.mark.asyncio
    async def test_login_with_email(self, db_session, test_user, test_password):
        result = await AuthService(db_session).login(test_user.email, test_password)

        assert isinstance(result, LoginResult)
        assert result.user.id == test_user.id
        assert result.email_verified is True
        assert result.user.last_login_at is not None

    @pytest.mark.asyncio
    async def test_login_with_username(self, db_session, test_user, test_password):
        result = await AuthService(db_session).login("alice", test_password)
        assert result.user.id == test_user.id

    @pytest.mark.asyncio
    async def test_login_username_ignores_case(self, db_session, create_user, test_password):
        user = await create_user("Bobby")

        result = await AuthService(db_session).login("bobby", test_password)
        assert result.user.id == user.id
        result = await AuthService(db_session).login("BOBBY", test_password)
        assert result.user.id == user.id

    @pytest.mark.asyncio
    async def test_unverified_user_can_login_with_warning_flag(self, db_session, create_user, test_password):
        await create_user("carol", email_verified=False)

        result = await AuthService(db_session).login("carol", test_password)
        assert result.email_verified is False

    @pytest.mark.asyncio
    async def test_unknown_and_wrong_password_look_the_same(self, db_session, test_user, test_password):
        auth = AuthService(db_session)

        with pytest.raises(InvalidCredentials) as unknown:
            await auth.login("nobody@example.com", test_password)
        with pytest.raises(InvalidCredentials) as wrong:
            await auth.login(test_user.email, "wrong-password")

        assert unknown.value.user_message == wrong.value.user_message

    @pytest.mark.asyncio
    async def test_inactive_user_rejected(self, db_session, create_user, test_password):
        await create_user("dave", is_active=False)

        with pytest.raises(InvalidCredentials):
            await AuthService(db_session).login("dave", test_password)

    @pytest.mark.asyncio
    async def test_failed_login_is_counted(self, db_session, test_user):
        with pytest.raises(InvalidCredentials):
            await AuthService(db_session).login("alice", "wrong-password")

        await db_session.refresh(test_user)
        assert test_user.failed_login_attempts == 1
        assert test_user.locked_until is None

    @pytest.mark.asyncio
    async def test_five_failures_lock_the_sixth_attempt(self, db_session, test_user, test_password):
        auth = AuthService(db_session)
        for _ in range(5):
            with pytest.raises(InvalidCredentials):
                await auth.login("alice", "wrong-password")

        # Even the correct password is refused while locked
        with pytest.raises(AccountLocked) as exc_info:
            await auth.login("alice", test_password)

        await db_session.refresh(test_user)
        assert test_user.failed_login_attempts == 5
        locked_for = as_utc(test_user.locked_until) - utcnow()
        assert timedelta(minutes=14) < locked_for <= timedelta(minutes=15)
        assert exc_info.value.status_code == 423

    @pytest.mark.asyncio
    async def test_four_failures_do_not_lock(self, db_session, test_user, test_password):
        auth = AuthService(db_session)
        for _ in range(4):
            with pytest.raises(InvalidCredentials):
                await auth.login("alice", "wrong-password")

        result = await auth.login("alice", test_password)
        assert result.user.failed_login_attempts == 0

    @pytest.mark.asyncio
    async def test_expired_lock_allows_login_and_resets(self, db_session, test_user, test_password):
        test_user.failed_login_attempts = 5
        test_user.locked_until = utcnow() - timedelta(minutes=1)
        await db_session.flush()

        result = await AuthService(db_session).login("alice", test_password)

        assert result.user.failed_login_attempts == 0
        assert result.user.locked_until is None


class TestEmailVerification:
    """Tests for verify_email and resend_verification."""

    @pytest.mark.asyncio
    async def test_register_verify_login(self, db_session):
        """Test alice registers, verifies once and logs in verified."""
        auth = AuthService(db_session)
        user, token = await auth.register("alice@example.com", "alice", "correct-horse")

        verified = await auth.verify_email(token)
        assert verified.id == user.id
        assert verified.email_verified is True

        with pytest.raises(TokenConsumed):
            await auth.verify_email(token)

        result = await auth.login("alice", "correct-horse")
        assert result.email_verified is True

    @pytest.mark.asyncio
    async def test_expired_verification_token(self, db_session):
        auth = AuthService(db_session)
        _, token = await auth.register("alice@example.com", "alice", "correct-horse")

        result = await db_session.execute(
            select(AuthTokenModel).where(AuthTokenModel.token_hash == hash_one_time_token(token))
        )
        record = result.scalar_one()
        record.expires_at = utcnow() - timedelta(minutes=1)
        await db_session.flush()

        with pytest.raises(TokenExpired) as exc_info:
            await auth.verify_email(token)
        assert exc_info.value.code == "token_expired"

    @pytest.mark.asyncio
    async def test_resend_invalidates_previous_token(self, db_session):
        auth = AuthService(db_session)
        _, old_token = await auth.register("alice@example.com", "alice", "correct-horse")

        user, new_token = await auth.resend_verification("alice@example.com")

        assert new_token != old_token
        with pytest.raises(TokenConsumed):
            await auth.verify_email(old_token)
        assert (await auth.verify_email(new_token)).id == user.id

    @pytest.mark.asyncio
    async def test_resend_for_verified_or_unknown_returns_none(self, db_session, test_user):
        auth = AuthService(db_session)
        assert await auth.resend_verification(test_user.email) is None
        assert await auth.resend_verification("nobody@example.com") is None


class TestPasswordReset:
    """Tests for request_password_reset and reset_password."""

    @pytest.mark.asyncio
    async def test_unknown_email_returns_none(self, db_session):
        assert await AuthService(db_session).request_password_reset("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_inactive_account_returns_none(self, db_session, create_user):
        user = await create_user("erin", is_active=False)
        assert await AuthService(db_session).request_password_reset(user.email) is None

    @pytest.mark.asyncio
    async def test_reset_replaces_password_and_clears_lock(self, db_session, test_user):
        auth = AuthService(db_session)
        test_user.failed_login_attempts = 5
        test_user.locked_until = utcnow() + timedelta(minutes=10)
        await db_session.flush()

        _, token = await auth.request_password_reset(test_user.email)
        user = await auth.reset_password(token, "brand-new-password")

        assert verify_password("brand-new-password", user.password_hash)
        assert user.failed_login_attempts == 0
        assert user.locked_until is None

        result = await auth.login("alice", "brand-new-password")
        assert result.user.id == test_user.id

    @pytest.mark.asyncio
    async def test_reset_token_single_use(self, db_session, test_user):
        auth = AuthService(db_session)
        _, token = await auth.request_password_reset(test_user.email)
        await auth.reset_password(token, "brand-new-password")

        with pytest.raises(TokenConsumed):
            await auth.reset_password(token, "another-password")

    @pytest.mark.asyncio
    async def test_weak_password_checked_first(self, db_session):
        with pytest.raises(WeakPassword):
            await AuthService(db_session).reset_password("bogus-token", "short")

    @pytest.mark.asyncio
    async def test_unknown_reset_token(self, db_session):
        with pytest.raises(TokenNotFound):
            await AuthService(db_session).reset_password("bogus-token", "long-enough-password")

    @pytest.mark.asyncio
    async def test_verification_token_cannot_reset_password(self, db_session):
        auth = AuthService(db_session)
        _, token = await auth.register("alice@example.com", "alice", "correct-horse")

        with pytest.raises(TokenNotFound):
            await auth.reset_password(token, "long-enough-password")


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_user_by_id(self, db_session, test_user):
        auth = AuthService(db_session)
        assert (await auth.get_user_by_id(test_user.id)).email == test_user.email
        assert await auth.get_user_by_id("missing") is None
