"""
Media service: encrypted image uploads organised in folders.
"""

import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mediavault.config import settings
from mediavault.core.exceptions import AccessDenied, InvalidUpload, NotFound
from mediavault.core.storage import EncryptedFileStore
from mediavault.db.models import UserMediaModel
from mediavault.services.folder_service import FolderService

logger = logging.getLogger(__name__)

MEDIA_AREA = "media"


def validate_upload(
    content_type: Optional[str],
    size: int,
    allowed_types: list[str],
    max_size: int,
) -> None:
    """
    Check an upload's declared type and size.

    Raises:
        InvalidUpload: Empty, too large (413) or of a disallowed type
    """
    if size <= 0:
        raise InvalidUpload("Empty upload", "No file uploaded.")
    if size > max_size:
        raise InvalidUpload(
            f"Upload of {size} bytes exceeds {max_size}",
            f"File too large. Maximum size: {max_size // (1024 * 1024)}MB",
            status_code=413,
        )
    if (content_type or "").lower() not in allowed_types:
        raise InvalidUpload(
            f"Content type {content_type!r} not allowed",
            f"Invalid file type. Allowed: {', '.join(allowed_types)}",
        )


def read_image_dimensions(data: bytes, filename: str) -> tuple[Optional[int], Optional[int]]:
    """Width and height of an image, or (None, None) if Pillow cannot read it."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.width, image.height
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Failed to read image dimensions for {filename}: {e}")
        return None, None


class MediaService:
    """Service for storing, listing and serving media."""

    def __init__(self, session: AsyncSession, store: Optional[EncryptedFileStore] = None):
        self.session = session
        self.folders = FolderService(session)
        self._store = store

    @property
    def store(self) -> EncryptedFileStore:
        if self._store is None:
            self._store = EncryptedFileStore()
        return self._store

    async def save_media(
        self,
        user_id: str,
        file_name: str,
        content_type: Optional[str],
        data: bytes,
        folder_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> UserMediaModel:
        """
        Validate, encrypt and record an uploaded image.

        Uploading into a shared folder requires read-write access; the media
        then belongs to the folder's owner.

        Raises:
            InvalidUpload: Type or size not accepted
            NotFound, AccessDenied: Target folder unavailable
        """
        validate_upload(content_type, len(data), settings.allowed_image_types, settings.max_upload_size)

        owner_id = user_id
        if folder_id is not None:
            access = await self.folders.require_access(folder_id, user_id, write=True)
            owner_id = access.owner_id

        width, height = read_image_dimensions(data, file_name)
        relative_path = await self.store.save(MEDIA_AREA, owner_id, file_name, data)

        media = UserMediaModel(
            user_id=owner_id,
            folder_id=folder_id,
            file_name=file_name,
            file_path=relative_path,
            file_size=len(data),
            mime_type=content_type.lower(),
            width=width,
            height=height,
            description=description,
            is_encrypted=True,
        )
        self.session.add(media)
        try:
            await self.session.flush()
        except Exception:
            self.store.delete(relative_path)
            raise

        logger.info(f"Stored media {media.id} ({len(data)} bytes) for user {owner_id}")
        return media

    async def list_media(
        self,
        user_id: str,
        folder_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> list[UserMediaModel]:
        """
        List media in a folder the user can read, newest first.

        Without a folder, lists the user's own unfiled media.
        """
        owner_id = user_id
        query = select(UserMediaModel)
        if folder_id is not None:
            access = await self.folders.resolve_access(folder_id, user_id)
            owner_id = access.owner_id
            query = query.where(UserMediaModel.folder_id == folder_id)
        else:
            query = query.where(UserMediaModel.folder_id.is_(None))

        result = await self.session.execute(
            query.where(UserMediaModel.user_id == owner_id)
            .order_by(UserMediaModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_media(
        self,
        media_id: str,
        user_id: str,
        write: bool = False,
    ) -> UserMediaModel:
        """
        Get media the user owns or reaches through a folder share.

        Raises:
            NotFound: Missing, or not visible to the user
            AccessDenied: Write requested through a read-only share
        """
        media = await self.session.get(UserMediaModel, media_id)
        if media is None:
            raise NotFound(f"Media {media_id} not found", "Image not found.")
        if media.user_id == user_id:
            return media
        if media.folder_id is None:
            raise NotFound(f"Media {media_id} not visible to {user_id}", "Image not found.")

        access = await self._folder_access(media, user_id)
        if write and not access.can_write:
            raise AccessDenied(f"User {user_id} has read-only access to media {media_id}")
        return media

    async def _folder_access(self, media: UserMediaModel, user_id: str):
        try:
            return await self.folders.resolve_access(media.folder_id, user_id)
        except AccessDenied:
            raise NotFound(f"Media {media.id} not visible to {user_id}", "Image not found.")

    async def read_content(self, media_id: str, user_id: str) -> tuple[UserMediaModel, bytes]:
        """Metadata and decrypted bytes of a media item."""
        media = await self.get_media(media_id, user_id)
        data = await self.store.read(media.file_path, encrypted=media.is_encrypted)
        return media, data

    async def delete_media(self, media_id: str, user_id: str) -> str:
        """
        Delete the media record.

        The stored file is left in place; pass the returned path to
        ``discard_file`` once the transaction has committed.

        Returns:
            Storage path of the deleted item's file
        """
        media = await self.get_media(media_id, user_id, write=True)
        file_path = media.file_path
        await self.session.delete(media)
        await self.session.flush()
        logger.info(f"Deleted media {media_id}")
        return file_path

    def discard_file(self, file_path: str) -> None:
        if not self.store.delete(file_path):
            logger.warning(f"Stored file {file_path} was already missing")
