"""
Credential utilities: password hashing, one-time tokens and JWT access tokens.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from mediavault.config import settings


# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# 32 random bytes = 256 bits of entropy
ONE_TIME_TOKEN_BYTES = 32


class TokenData(BaseModel):
    """Data extracted from a JWT token."""

    user_id: str
    email: str
    exp: datetime
    token_type: str


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed or unknown hash format
        return False


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def dummy_verify() -> None:
    """Spend the same time as a real verification for unknown accounts."""
    pwd_context.dummy_verify()


def generate_one_time_token() -> str:
    """Create an unguessable URL-safe token for email links."""
    return secrets.token_urlsafe(ONE_TIME_TOKEN_BYTES)


def hash_one_time_token(token: str) -> str:
    """SHA-256 digest stored in place of the raw token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_access_token(user_id: str, email: str) -> str:
    """
    Create a JWT access token for API clients.

    Args:
        user_id: User's unique ID
        email: User's email

    Returns:
        Encoded JWT token
    """
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.jwt_access_expire_minutes)
    payload = {
        "sub": user_id,
        "email": email,
        "exp": expire,
        "type": "access",
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[TokenData]:
    """
    Decode and validate a JWT token.

    Args:
        token: Encoded JWT token

    Returns:
        TokenData if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return TokenData(
            user_id=payload["sub"],
            email=payload["email"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            token_type=payload.get("type", "access"),
        )
    except (JWTError, KeyError):
        return None


def is_token_expired(token_data: TokenData) -> bool:
    """Check if a token is expired."""
    return token_data.exp < datetime.now(timezone.utc)
