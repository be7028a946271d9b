"""
Folder share registry.

Only a folder's owner may create, change, list or revoke its shares.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mediavault.core.exceptions import DuplicateShare, NotFound, NotOwner, SelfShare
from mediavault.core.time import utcnow
from mediavault.core.visibility import Permission
from mediavault.db.models import FolderModel, FolderShareModel, UserModel

logger = logging.getLogger(__name__)


@dataclass
class ShareListing:
    """A share together with the target user's identity."""

    share: FolderShareModel
    username: str
    email: str


class ShareService:
    """Service for managing folder shares."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_owned_folder(self, folder_id: str, owner_id: str) -> FolderModel:
        folder = await self.session.get(FolderModel, folder_id)
        if folder is None:
            raise NotFound(f"Folder {folder_id} not found", "Folder not found.")
        if folder.user_id != owner_id:
            raise NotOwner(f"User {owner_id} does not own folder {folder_id}")
        return folder

    async def _get_share(self, folder_id: str, target_user_id: str) -> FolderShareModel | None:
        result = await self.session.execute(
            select(FolderShareModel).where(
                FolderShareModel.folder_id == folder_id,
                FolderShareModel.shared_with_user_id == target_user_id,
            )
        )
        return result.scalar_one_or_none()

    async def create_share(
        self,
        folder_id: str,
        owner_id: str,
        target_user_id: str,
        permission: Permission = Permission.READ_ONLY,
        include_subfolders: bool = True,
    ) -> FolderShareModel:
        """
        Share a folder with another user.

        Raises:
            NotFound: Folder or target user does not exist
            NotOwner: Caller does not own the folder
            SelfShare: Target is the owner
            DuplicateShare: Folder already shared with the target
        """
        await self._get_owned_folder(folder_id, owner_id)
        if target_user_id == owner_id:
            raise SelfShare(f"User {owner_id} tried to share folder {folder_id} with self")
        if await self.session.get(UserModel, target_user_id) is None:
            raise NotFound(f"User {target_user_id} not found", "User not found.")
        if await self._get_share(folder_id, target_user_id) is not None:
            raise DuplicateShare(f"Folder {folder_id} already shared with {target_user_id}")

        share = FolderShareModel(
            folder_id=folder_id,
            owner_user_id=owner_id,
            shared_with_user_id=target_user_id,
            permission_level=Permission(permission).value,
            include_subfolders=include_subfolders,
        )
        self.session.add(share)
        await self.session.flush()
        logger.info(
            f"Folder {folder_id} shared with {target_user_id} "
            f"({share.permission_level}, subfolders={include_subfolders})"
        )
        return share

    async def update_share(
        self,
        folder_id: str,
        owner_id: str,
        target_user_id: str,
        permission: Permission,
        include_subfolders: bool,
    ) -> FolderShareModel:
        await self._get_owned_folder(folder_id, owner_id)
        share = await self._get_share(folder_id, target_user_id)
        if share is None:
            raise NotFound(
                f"Folder {folder_id} is not shared with {target_user_id}",
                "Share not found.",
            )

        share.permission_level = Permission(permission).value
        share.include_subfolders = include_subfolders
        share.updated_at = utcnow()
        await self.session.flush()
        return share

    async def revoke_share(self, folder_id: str, owner_id: str, target_user_id: str) -> bool:
        """
        Remove a share. Revoking a share that does not exist is a no-op.

        Returns:
            True if a share was removed
        """
        await self._get_owned_folder(folder_id, owner_id)
        result = await self.session.execute(
            delete(FolderShareModel).where(
                FolderShareModel.folder_id == folder_id,
                FolderShareModel.shared_with_user_id == target_user_id,
            )
        )
        removed = result.rowcount > 0
        if removed:
            logger.info(f"Folder {folder_id} unshared from {target_user_id}")
        return removed

    async def list_folder_shares(self, folder_id: str, owner_id: str) -> list[ShareListing]:
        """Shares of a folder with target usernames and emails."""
        await self._get_owned_folder(folder_id, owner_id)
        result = await self.session.execute(
            select(FolderShareModel, UserModel.username, UserModel.email)
            .join(UserModel, UserModel.id == FolderShareModel.shared_with_user_id)
            .where(FolderShareModel.folder_id == folder_id)
            .order_by(UserModel.username)
        )
        return [
            ShareListing(share=share, username=username, email=email)
            for share, username, email in result.all()
        ]
