"""
Single-use tokens for email verification and password reset.

Raw tokens are returned to the caller exactly once (to be mailed); the
database only holds their SHA-256 digest.
"""

from datetime import timedelta
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediavault.config import settings
from mediavault.core.auth import generate_one_time_token, hash_one_time_token
from mediavault.core.exceptions import TokenConsumed, TokenExpired, TokenNotFound
from mediavault.core.time import as_utc, utcnow
from mediavault.db.models import AuthTokenModel


class TokenPurpose(str, Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


def token_ttl(purpose: TokenPurpose) -> timedelta:
    """Lifetime of a freshly issued token."""
    if purpose is TokenPurpose.EMAIL_VERIFICATION:
        return timedelta(hours=settings.verification_token_ttl_hours)
    return timedelta(minutes=settings.password_reset_token_ttl_minutes)


class TokenService:
    """Issues, validates and consumes one-time tokens."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def issue(self, user_id: str, purpose: TokenPurpose) -> str:
        """
        Create a token for a user.

        Args:
            user_id: Owner of the token
            purpose: What the token may be redeemed for

        Returns:
            The raw token (never stored)
        """
        raw_token = generate_one_time_token()
        now = utcnow()
        self.session.add(
            AuthTokenModel(
                user_id=user_id,
                purpose=purpose.value,
                token_hash=hash_one_time_token(raw_token),
                created_at=now,
                expires_at=now + token_ttl(purpose),
            )
        )
        await self.session.flush()
        return raw_token

    async def validate(self, token: str, purpose: TokenPurpose) -> AuthTokenModel:
        """
        Look up a token without consuming it.

        Raises:
            TokenNotFound: Unknown token or issued for another purpose
            TokenConsumed: Already redeemed
            TokenExpired: Past its expiry
        """
        if not token:
            raise TokenNotFound("Empty token")

        result = await self.session.execute(
            select(AuthTokenModel).where(
                AuthTokenModel.token_hash == hash_one_time_token(token)
            )
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()

        if record is None or record.purpose != purpose.value:
            raise TokenNotFound(f"No {purpose.value} token matches")
        if record.consumed_at is not None:
            raise TokenConsumed(f"Token {record.id} already consumed")
        if utcnow() >= as_utc(record.expires_at):
            raise TokenExpired(f"Token {record.id} expired at {record.expires_at}")

        return record

    async def consume(self, record: AuthTokenModel) -> None:
        """
        Mark a token used.

        The update only matches while the token is unconsumed, so two
        concurrent redemptions cannot both succeed.
        """
        now = utcnow()
        result = await self.session.execute(
            update(AuthTokenModel)
            .where(
                AuthTokenModel.id == record.id,
                AuthTokenModel.consumed_at.is_(None),
            )
            .values(consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise TokenConsumed(f"Token {record.id} consumed concurrently")
        record.consumed_at = now

    async def redeem(self, token: str, purpose: TokenPurpose) -> AuthTokenModel:
        """Validate and consume in the current transaction."""
        record = await self.validate(token, purpose)
        await self.consume(record)
        return record

    async def revoke_outstanding(self, user_id: str, purpose: TokenPurpose) -> int:
        """Consume every unused token of a purpose. Returns the count revoked."""
        result = await self.session.execute(
            update(AuthTokenModel)
            .where(
                AuthTokenModel.user_id == user_id,
                AuthTokenModel.purpose == purpose.value,
                AuthTokenModel.consumed_at.is_(None),
            )
            .values(consumed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
