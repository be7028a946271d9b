"""
Unit tests for custom exception classes.
Tests the exception hierarchy, user messages, codes and HTTP statuses.
"""

import pytest
from datetime import datetime, timedelta, timezone

from mediavault.core.exceptions import (
    MediaVaultError,
    InvalidCredentials,
    AccountLocked,
    DuplicateEmail,
    DuplicateUsername,
    WeakPassword,
    TokenError,
    TokenNotFound,
    TokenExpired,
    TokenConsumed,
    NotFound,
    NotOwner,
    AccessDenied,
    SelfShare,
    DuplicateShare,
    CorruptHierarchy,
    FolderNotEmpty,
    InvalidUpload,
    StorageError,
    EncryptionError,
)


class TestMediaVaultError:
    """Tests for base MediaVaultError class."""

    def test_default_user_message(self):
        """Test MediaVaultError uses default user message when not provided."""
        error = MediaVaultError("Internal error details")

        assert str(error) == "Internal error details"
        assert error.user_message == "An error occurred while processing your request."

    def test_custom_user_message(self):
        error = MediaVaultError("Internal details", user_message="Custom user message")

        assert str(error) == "Internal details"
        assert error.user_message == "Custom user message"

    def test_no_message_falls_back_to_user_message(self):
        error = NotFound()
        assert str(error) == error.user_message

    def test_can_be_raised_and_caught(self):
        with pytest.raises(MediaVaultError) as exc_info:
            raise SelfShare("internal")

        assert exc_info.value.code == "self_share"


class TestTaxonomy:
    """Tests for error codes and statuses."""

    @pytest.mark.parametrize(
        "error_class,status_code",
        [
            (InvalidCredentials, 401),
            (DuplicateEmail, 409),
            (DuplicateUsername, 409),
            (WeakPassword, 400),
            (TokenNotFound, 400),
            (TokenExpired, 400),
            (TokenConsumed, 400),
            (NotFound, 404),
            (NotOwner, 403),
            (AccessDenied, 403),
            (SelfShare, 400),
            (DuplicateShare, 409),
            (CorruptHierarchy, 500),
            (FolderNotEmpty, 409),
            (StorageError, 500),
        ],
    )
    def test_status_codes(self, error_class, status_code):
        assert error_class("x").status_code == status_code

    def test_token_errors_share_base(self):
        for error_class in (TokenNotFound, TokenExpired, TokenConsumed):
            assert issubclass(error_class, TokenError)

    def test_token_expired_code_is_distinguishable(self):
        """Test callers can offer a resend path on expiry."""
        assert TokenExpired().code == "token_expired"
        assert TokenConsumed().code != TokenExpired().code

    def test_encryption_error_is_storage_error(self):
        assert isinstance(EncryptionError("bad tag"), StorageError)

    def test_invalid_upload_status_override(self):
        assert InvalidUpload("too big", status_code=413).status_code == 413
        assert InvalidUpload("bad type").status_code == 400
        # Override applies to the instance only
        assert InvalidUpload.status_code == 400


class TestAccountLocked:
    """Tests for the lockout error."""

    def test_message_reports_remaining_minutes(self):
        locked_until = datetime.now(timezone.utc) + timedelta(minutes=10, seconds=30)
        error = AccountLocked(locked_until)

        assert error.status_code == 423
        assert error.locked_until == locked_until
        assert "10 minute(s)" in error.user_message

    def test_message_has_at_least_one_minute(self):
        error = AccountLocked(datetime.now(timezone.utc) + timedelta(seconds=5))
        assert "1 minute(s)" in error.user_message
