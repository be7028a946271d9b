"""
Encrypted blob storage on the local filesystem.

Paths handed back to callers are relative to the storage root so that the
upload directory can move without rewriting database rows.
"""

import logging
import os
from pathlib import Path
from typing import Optional
from uuid import uuid4

import aiofiles

from mediavault.config import settings
from mediavault.core.encryption import EncryptionService, get_encryption_service
from mediavault.core.exceptions import StorageError

logger = logging.getLogger(__name__)


def make_storage_name(original_filename: str) -> str:
    """Random on-disk name keeping only the original extension."""
    extension = Path(original_filename or "").suffix.lower()
    extension = "".join(c for c in extension if c.isalnum() or c == ".")[:10]
    return f"{uuid4().hex}{extension}.enc"


class EncryptedFileStore:
    """Writes, reads and deletes encrypted files under a root directory."""

    def __init__(
        self,
        root: Optional[str] = None,
        encryption: Optional[EncryptionService] = None,
    ):
        self.root = Path(root or settings.upload_dir)
        self.encryption = encryption or get_encryption_service()

    def _resolve(self, relative_path: str) -> Path:
        root = self.root.resolve()
        path = (root / relative_path).resolve()
        if root not in path.parents:
            raise StorageError(f"Path escapes storage root: {relative_path}")
        return path

    async def save(self, area: str, owner_id: str, original_filename: str, data: bytes) -> str:
        """
        Encrypt and store file contents.

        Args:
            area: Top-level bucket, e.g. "media" or "medical"
            owner_id: Subdirectory grouping files by owner
            original_filename: Used only for its extension
            data: Plain file contents

        Returns:
            Path relative to the storage root
        """
        relative_path = os.path.join(area, owner_id, make_storage_name(original_filename))
        path = self._resolve(relative_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with aiofiles.open(path, "wb") as out_file:
                await out_file.write(self.encryption.encrypt(data))
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise StorageError(f"Failed to write {relative_path}: {e}")

        return relative_path

    async def read(self, relative_path: str, encrypted: bool = True) -> bytes:
        """Read a stored file, decrypting it when flagged as encrypted."""
        path = self._resolve(relative_path)
        try:
            async with aiofiles.open(path, "rb") as in_file:
                blob = await in_file.read()
        except FileNotFoundError:
            logger.error(f"Stored file not found at {path}")
            raise StorageError(f"Missing file {relative_path}", "The file is no longer available.")
        except OSError as e:
            raise StorageError(f"Failed to read {relative_path}: {e}")

        return self.encryption.decrypt(blob) if encrypted else blob

    def delete(self, relative_path: str) -> bool:
        """Remove a stored file. Missing files are not an error."""
        path = self._resolve(relative_path)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError:
            logger.exception(f"Failed to delete stored file {path}")
            return False
