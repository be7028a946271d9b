"""
Unit tests for credential utilities.
Tests password hashing, one-time tokens and JWT access tokens.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from jose import jwt

from mediavault.core.auth import (
    verify_password,
    hash_password,
    dummy_verify,
    generate_one_time_token,
    hash_one_time_token,
    create_access_token,
    decode_token,
    is_token_expired,
    TokenData,
)


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_hash_password_creates_hash(self):
        """Test that hash_password creates a bcrypt hash."""
        password = "my_secure_password"
        hashed = hash_password(password)

        assert hashed != password
        assert hashed.startswith("$2b$")  # bcrypt prefix
        assert len(hashed) == 60  # bcrypt hash length

    def test_hash_password_different_each_time(self):
        """Test that same password produces different hashes (due to salt)."""
        assert hash_password("same_password") != hash_password("same_password")

    def test_verify_password_correct(self):
        hashed = hash_password("my_secure_password")
        assert verify_password("my_secure_password", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = hash_password("my_secure_password")
        assert verify_password("wrong_password", hashed) is False

    def test_verify_password_malformed_hash(self):
        """Test that an unrecognised hash is a failed check, not an error."""
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_dummy_verify_runs(self):
        """Test the timing equaliser for unknown accounts does not raise."""
        dummy_verify()


class TestOneTimeTokens:
    """Tests for email link tokens."""

    def test_tokens_are_unique(self):
        tokens = {generate_one_time_token() for _ in range(50)}
        assert len(tokens) == 50

    def test_token_has_256_bits(self):
        """Test token_urlsafe(32) yields 43 URL-safe characters."""
        token = generate_one_time_token()
        assert len(token) == 43
        assert all(c.isalnum() or c in "-_" for c in token)

    def test_hash_is_stable_sha256(self):
        token = generate_one_time_token()
        digest = hash_one_time_token(token)

        assert digest == hash_one_time_token(token)
        assert len(digest) == 64
        assert digest != token


class TestAccessToken:
    """Tests for access token creation and validation."""

    @patch("mediavault.core.auth.settings")
    def test_access_token_decode(self, mock_settings):
        """Test that access token can be decoded."""
        mock_settings.jwt_secret_key = "test-secret"
        mock_settings.jwt_algorithm = "HS256"
        mock_settings.jwt_access_expire_minutes = 30

        token = create_access_token("user-123", "user@example.com")
        decoded = decode_token(token)

        assert isinstance(decoded, TokenData)
        assert decoded.user_id == "user-123"
        assert decoded.email == "user@example.com"
        assert decoded.token_type == "access"

    @patch("mediavault.core.auth.settings")
    def test_access_token_expiration(self, mock_settings):
        """Test that access token has correct expiration."""
        mock_settings.jwt_secret_key = "test-secret"
        mock_settings.jwt_algorithm = "HS256"
        mock_settings.jwt_access_expire_minutes = 30

        decoded = decode_token(create_access_token("user-123", "user@example.com"))
        expected_exp = datetime.now(timezone.utc) + timedelta(minutes=30)

        # Allow 5 second tolerance
        assert abs((decoded.exp - expected_exp).total_seconds()) < 5
        assert is_token_expired(decoded) is False

    def test_decode_invalid_token(self):
        assert decode_token("not.a.jwt") is None

    def test_decode_token_with_wrong_secret(self):
        token = jwt.encode(
            {"sub": "user-123", "email": "user@example.com", "type": "access"},
            "some-other-secret",
            algorithm="HS256",
        )
        assert decode_token(token) is None

    def test_is_token_expired(self):
        expired = TokenData(
            user_id="user-123",
            email="user@example.com",
            exp=datetime.now(timezone.utc) - timedelta(minutes=1),
            token_type="access",
        )
        assert is_token_expired(expired) is True
