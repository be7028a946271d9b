"""
Authentication service: registration, login with lockout, email
verification and password reset.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediavault.config import settings
from mediavault.core.auth import dummy_verify, hash_password, verify_password
from mediavault.core.exceptions import (
    AccountLocked,
    DuplicateEmail,
    DuplicateUsername,
    InvalidCredentials,
    TokenError,
    WeakPassword,
)
from mediavault.core.time import as_utc, utcnow
from mediavault.db.models import RoleModel, UserModel, UserRoleModel
from mediavault.services.token_service import TokenPurpose, TokenService

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    """Outcome of a successful login."""

    user: UserModel
    email_verified: bool


def check_password_strength(password: str) -> None:
    if len(password or "") < settings.password_min_length:
        raise WeakPassword(
            f"Password shorter than {settings.password_min_length} characters",
            f"Password must be at least {settings.password_min_length} characters.",
        )


class AuthService:
    """Service for authentication and account lifecycle."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.tokens = TokenService(session)

    async def register(
        self,
        email: str,
        username: str,
        password: str,
    ) -> tuple[UserModel, str]:
        """
        Register a new, unverified user.

        Args:
            email: User's email address
            username: Unique public handle
            password: Plain text password

        Returns:
            The created user and the raw email verification token

        Raises:
            WeakPassword: Password too short
            DuplicateEmail: Email already registered
            DuplicateUsername: Username already taken
        """
        check_password_strength(password)
        email = email.strip().lower()
        username = username.strip()

        if await self.get_user_by_email(email):
            raise DuplicateEmail(f"Email {email} already registered")
        if await self.get_user_by_username(username):
            raise DuplicateUsername(f"Username {username} already taken")

        user = UserModel(
            email=email,
            username=username,
            password_hash=hash_password(password),
            is_active=True,
            email_verified=False,
            failed_login_attempts=0,
        )
        self.session.add(user)
        await self.session.flush()

        token = await self.tokens.issue(user.id, TokenPurpose.EMAIL_VERIFICATION)
        logger.info(f"Registered user {user.id} ({username})")
        return user, token

    async def login(self, identifier: str, password: str) -> LoginResult:
        """
        Authenticate by email or username.

        Raises:
            InvalidCredentials: Unknown identifier, wrong password or inactive account
            AccountLocked: Too many recent failures
        """
        identifier = (identifier or "").strip()
        result = await self.session.execute(
            select(UserModel).where(
                or_(
                    UserModel.email == identifier.lower(),
                    func.lower(UserModel.username) == identifier.lower(),
                )
            )
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()

        if user is None:
            dummy_verify()
            raise InvalidCredentials(f"Unknown login identifier {identifier!r}")

        locked_until = as_utc(user.locked_until)
        if locked_until is not None and locked_until > utcnow():
            raise AccountLocked(locked_until)

        if not user.is_active:
            raise InvalidCredentials(f"Login attempt for inactive user {user.id}")

        if not verify_password(password, user.password_hash):
            await self._record_failed_login(user.id)
            raise InvalidCredentials(f"Wrong password for user {user.id}")

        now = utcnow()
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = now
        await self.session.flush()

        return LoginResult(user=user, email_verified=user.email_verified)

    async def _record_failed_login(self, user_id: str) -> None:
        """
        Count a failed login and lock the account at the threshold.

        Committed immediately so the rollback of the failing request does
        not discard it.
        """
        attempts = UserModel.failed_login_attempts + 1
        lock_until = utcnow() + timedelta(minutes=settings.login_lockout_minutes)
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(
                failed_login_attempts=attempts,
                locked_until=case(
                    (attempts >= settings.login_max_failed_attempts, lock_until),
                    else_=UserModel.locked_until,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        result = await self.session.execute(
            select(UserModel.failed_login_attempts).where(UserModel.id == user_id)
        )
        count = result.scalar_one()
        if count >= settings.login_max_failed_attempts:
            logger.warning(f"User {user_id} locked after {count} failed logins")

    async def verify_email(self, token: str) -> UserModel:
        """
        Redeem a verification token and mark the email verified.

        Raises:
            TokenNotFound, TokenConsumed, TokenExpired
        """
        record = await self.tokens.redeem(token, TokenPurpose.EMAIL_VERIFICATION)
        user = await self.get_user_by_id(record.user_id)
        user.email_verified = True
        await self.session.flush()
        logger.info(f"Email verified for user {user.id}")
        return user

    async def resend_verification(self, email: str) -> Optional[tuple[UserModel, str]]:
        """
        Replace outstanding verification tokens with a fresh one.

        Returns None for unknown or already verified accounts.
        """
        user = await self.get_user_by_email(email.strip().lower())
        if user is None or user.email_verified:
            return None

        await self.tokens.revoke_outstanding(user.id, TokenPurpose.EMAIL_VERIFICATION)
        token = await self.tokens.issue(user.id, TokenPurpose.EMAIL_VERIFICATION)
        return user, token

    async def request_password_reset(self, email: str) -> Optional[tuple[UserModel, str]]:
        """
        Issue a reset token for an existing, active account.

        Returns None otherwise; callers must respond identically either way.
        """
        user = await self.get_user_by_email((email or "").strip().lower())
        if user is None or not user.is_active:
            return None

        await self.tokens.revoke_outstanding(user.id, TokenPurpose.PASSWORD_RESET)
        token = await self.tokens.issue(user.id, TokenPurpose.PASSWORD_RESET)
        return user, token

    async def reset_password(self, token: str, new_password: str) -> UserModel:
        """
        Consume a reset token and replace the password hash.

        Raises:
            WeakPassword: New password too short (checked before the token)
            TokenNotFound, TokenConsumed, TokenExpired
        """
        check_password_strength(new_password)

        try:
            record = await self.tokens.redeem(token, TokenPurpose.PASSWORD_RESET)
        except TokenError as e:
            logger.warning(f"Password reset rejected: {e}")
            raise

        user = await self.get_user_by_id(record.user_id)
        user.password_hash = hash_password(new_password)
        user.failed_login_attempts = 0
        user.locked_until = None
        await self.session.flush()
        logger.info(f"Password reset for user {user.id}")
        return user

    async def get_user_by_id(self, user_id: str) -> Optional[UserModel]:
        """Get user by ID."""
        return await self.session.get(UserModel, user_id)

    async def get_user_by_email(self, email: str) -> Optional[UserModel]:
        """Get user by email."""
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email)
        )
        return result.scalar_one_or_none()

    async def get_user_by_username(self, username: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(func.lower(UserModel.username) == username.lower())
        )
        return result.scalar_one_or_none()

    async def get_user_roles(self, user_id: str) -> list[str]:
        """Role names held by a user."""
        result = await self.session.execute(
            select(RoleModel.name)
            .join(UserRoleModel, UserRoleModel.role_id == RoleModel.id)
            .where(UserRoleModel.user_id == user_id)
            .order_by(RoleModel.name)
        )
        return list(result.scalars().all())
