"""Custom exceptions for the Media Vault application.

These exceptions provide structured error handling that:
- Separates internal details from user-facing messages
- Carries a stable error code and HTTP status for the API layer
- Maintains security by not leaking implementation details
"""

from datetime import datetime, timezone


class MediaVaultError(Exception):
    """Base exception for domain errors."""

    code = "error"
    status_code = 400
    default_user_message = "An error occurred while processing your request."

    def __init__(self, message: str | None = None, user_message: str | None = None):
        """
        Initialize a domain error.

        Args:
            message: Internal error message for logging/debugging
            user_message: Safe message to show to users (defaults to the class message)
        """
        super().__init__(message or self.default_user_message)
        self.user_message = user_message or self.default_user_message


# ============ Authentication ============

class InvalidCredentials(MediaVaultError):
    """Unknown identifier, wrong password or inactive account."""

    code = "invalid_credentials"
    status_code = 401
    default_user_message = "Invalid email/username or password."


class AccountLocked(MediaVaultError):
    """Too many failed logins; the account is in its cooldown window."""

    code = "account_locked"
    status_code = 423
    default_user_message = "Account is locked. Please try again later."

    def __init__(self, locked_until: datetime, message: str | None = None):
        self.locked_until = locked_until
        remaining = locked_until - datetime.now(timezone.utc)
        minutes = max(1, int(remaining.total_seconds() // 60))
        super().__init__(
            message or f"Account locked until {locked_until.isoformat()}",
            f"Account is locked. Try again in {minutes} minute(s).",
        )


class DuplicateEmail(MediaVaultError):
    code = "duplicate_email"
    status_code = 409
    default_user_message = "Email is already registered."


class DuplicateUsername(MediaVaultError):
    code = "duplicate_username"
    status_code = 409
    default_user_message = "Username is already taken."


class WeakPassword(MediaVaultError):
    code = "weak_password"
    status_code = 400
    default_user_message = "Password must be at least 8 characters."


# ============ Tokens ============

class TokenError(MediaVaultError):
    """Base class for verification/reset token failures."""

    code = "token_invalid"
    status_code = 400
    default_user_message = "This link is invalid or has expired."


class TokenNotFound(TokenError):
    code = "token_not_found"
    default_user_message = "Invalid or unknown token."


class TokenExpired(TokenError):
    code = "token_expired"
    default_user_message = "This token has expired. Please request a new one."


class TokenConsumed(TokenError):
    code = "token_consumed"
    default_user_message = "This token has already been used."


# ============ Folders & sharing ============

class NotFound(MediaVaultError):
    code = "not_found"
    status_code = 404
    default_user_message = "The requested item was not found."


class NotOwner(MediaVaultError):
    code = "not_owner"
    status_code = 403
    default_user_message = "Only the owner can perform this action."


class AccessDenied(MediaVaultError):
    code = "access_denied"
    status_code = 403
    default_user_message = "You do not have access to this item."


class SelfShare(MediaVaultError):
    code = "self_share"
    status_code = 400
    default_user_message = "You cannot share a folder with yourself."


class DuplicateShare(MediaVaultError):
    code = "duplicate_share"
    status_code = 409
    default_user_message = "This folder is already shared with that user."


class CorruptHierarchy(MediaVaultError):
    code = "corrupt_hierarchy"
    status_code = 500
    default_user_message = "The folder structure could not be resolved."


class InvalidFolderName(MediaVaultError):
    code = "invalid_folder_name"
    status_code = 400
    default_user_message = "Folder name is required."


class InvalidFolderMove(MediaVaultError):
    code = "invalid_folder_move"
    status_code = 400
    default_user_message = "A folder cannot be moved into itself or one of its subfolders."


class FolderNotEmpty(MediaVaultError):
    code = "folder_not_empty"
    status_code = 409
    default_user_message = "The folder contains items."


# ============ Uploads & storage ============

class InvalidUpload(MediaVaultError):
    code = "invalid_upload"
    status_code = 400
    default_user_message = "The uploaded file is not allowed."

    def __init__(
        self,
        message: str | None = None,
        user_message: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, user_message)
        if status_code is not None:
            self.status_code = status_code


class StorageError(MediaVaultError):
    code = "storage_error"
    status_code = 500
    default_user_message = "Unable to access the stored file."


class EncryptionError(StorageError):
    code = "encryption_error"
    default_user_message = "Unable to process the encrypted file."


# ============ Administration ============

class DuplicateRole(MediaVaultError):
    code = "duplicate_role"
    status_code = 409
    default_user_message = "A role with that name already exists."
