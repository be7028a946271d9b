"""
Folder hierarchy and visibility resolution.

Owners always have read-write access to their folders. Other users reach a
folder through the nearest share on its ancestor chain; see
``mediavault.core.visibility`` for the rule itself.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediavault.config import settings
from mediavault.core.exceptions import (
    AccessDenied,
    CorruptHierarchy,
    FolderNotEmpty,
    InvalidFolderMove,
    InvalidFolderName,
    NotFound,
    NotOwner,
)
from mediavault.core.time import utcnow
from mediavault.core.visibility import (
    Permission,
    ShareGrant,
    resolve_share_permission,
    walk_ancestors,
)
from mediavault.db.models import FolderModel, FolderShareModel, UserMediaModel, UserModel

logger = logging.getLogger(__name__)

# Characters rejected in file names on common filesystems
INVALID_NAME_CHARS = frozenset('<>:"/\\|?*') | frozenset(chr(i) for i in range(32))


def sanitize_folder_name(name: Optional[str]) -> str:
    """
    Strip characters that are invalid in file names, trim and cap the length.

    Raises:
        InvalidFolderName: If nothing usable remains
    """
    cleaned = "".join(c for c in (name or "") if c not in INVALID_NAME_CHARS).strip()
    cleaned = cleaned[: settings.folder_name_max_length].strip()
    if not cleaned:
        raise InvalidFolderName(f"Folder name {name!r} is empty after sanitizing")
    return cleaned


@dataclass
class FolderAccess:
    """Effective access of one user to one folder."""

    folder: FolderModel
    owner_id: str
    permission: Permission
    is_owner: bool

    @property
    def can_write(self) -> bool:
        return self.permission.can_write


@dataclass
class SharedFolder:
    """A folder shared directly with a user."""

    folder: FolderModel
    owner_id: str
    owner_username: str
    permission: Permission
    include_subfolders: bool
    shared_at: datetime


class FolderService:
    """Service for folder CRUD and access decisions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ============ Lookups ============

    async def get_folder(self, folder_id: str) -> FolderModel:
        """Get a folder by ID or raise NotFound."""
        folder = await self.session.get(FolderModel, folder_id)
        if folder is None:
            raise NotFound(f"Folder {folder_id} not found", "Folder not found.")
        return folder

    async def get_owner_id(self, folder_id: str) -> str:
        folder = await self.get_folder(folder_id)
        return folder.user_id

    async def _parent_of(self, folder_id: str) -> Optional[str]:
        result = await self.session.execute(
            select(FolderModel.parent_folder_id).where(FolderModel.id == folder_id)
        )
        return result.scalar_one_or_none()

    async def ancestor_chain(self, folder_id: str) -> list[str]:
        """Folder ids from ``folder_id`` up to its root."""
        return await walk_ancestors(folder_id, self._parent_of, settings.folder_max_depth)

    async def subtree_height(self, folder_id: str) -> int:
        """Levels in the subtree rooted at ``folder_id``; 1 for a leaf."""
        height = 0
        level = [folder_id]
        # Bounded so a cycle below the folder cannot loop forever
        while level and height <= settings.folder_max_depth:
            height += 1
            result = await self.session.execute(
                select(FolderModel.id).where(FolderModel.parent_folder_id.in_(level))
            )
            level = list(result.scalars().all())
        return height

    async def _get_owned(self, folder_id: str, owner_id: str) -> FolderModel:
        folder = await self.get_folder(folder_id)
        if folder.user_id != owner_id:
            raise NotOwner(f"User {owner_id} does not own folder {folder_id}")
        return folder

    async def list_folders(
        self,
        owner_id: str,
        parent_id: Optional[str] = None,
    ) -> list[FolderModel]:
        """
        List an owner's folders under a parent.

        Args:
            owner_id: Folder owner
            parent_id: Parent folder, or None for root folders

        Returns:
            Folders ordered by name
        """
        query = select(FolderModel).where(FolderModel.user_id == owner_id)
        if parent_id is None:
            query = query.where(FolderModel.parent_folder_id.is_(None))
        else:
            query = query.where(FolderModel.parent_folder_id == parent_id)
        result = await self.session.execute(query.order_by(FolderModel.name))
        return list(result.scalars().all())

    async def resolve_path(
        self,
        folder_id: Optional[str],
        context_owner_id: str,
    ) -> list[FolderModel]:
        """
        Breadcrumbs for a folder, root first.

        The walk stops at the first folder not owned by ``context_owner_id``,
        so a sharee only ever sees the owner's part of the tree they can
        reach through the owner's folders.

        Raises:
            CorruptHierarchy: On a cycle or an over-deep chain
        """
        path: list[FolderModel] = []
        if folder_id is None:
            return path

        seen: set[str] = set()
        current: Optional[str] = folder_id
        while current is not None:
            if current in seen:
                raise CorruptHierarchy(f"Folder cycle detected at {current}")
            if len(seen) >= settings.folder_max_depth:
                raise CorruptHierarchy(
                    f"Folder {folder_id} exceeds max depth {settings.folder_max_depth}"
                )
            seen.add(current)

            folder = await self.session.get(FolderModel, current)
            if folder is None or folder.user_id != context_owner_id:
                break
            path.insert(0, folder)
            current = folder.parent_folder_id

        return path

    async def resolve_visible_path(self, folder_id: str, user_id: str) -> list[FolderModel]:
        """
        Breadcrumbs the user may see.

        Owners get the full path. Sharees get the part from the folder carrying
        their nearest share down to ``folder_id``.
        """
        access = await self.resolve_access(folder_id, user_id)
        path = await self.resolve_path(folder_id, access.owner_id)
        if access.is_owner:
            return path

        grants = await self._grants_for(user_id, [folder.id for folder in path])
        for index in range(len(path) - 1, -1, -1):
            if path[index].id in grants:
                return path[index:]
        return []

    async def list_shared_folders(self, target_user_id: str) -> list[SharedFolder]:
        """Every folder shared directly with a user, cascading or not."""
        result = await self.session.execute(
            select(FolderShareModel, FolderModel, UserModel.username)
            .join(FolderModel, FolderModel.id == FolderShareModel.folder_id)
            .join(UserModel, UserModel.id == FolderShareModel.owner_user_id)
            .where(FolderShareModel.shared_with_user_id == target_user_id)
            .order_by(FolderModel.name)
        )
        return [
            SharedFolder(
                folder=folder,
                owner_id=share.owner_user_id,
                owner_username=owner_username,
                permission=Permission(share.permission_level),
                include_subfolders=share.include_subfolders,
                shared_at=share.created_at,
            )
            for share, folder, owner_username in result.all()
        ]

    # ============ Access ============

    async def _grants_for(self, user_id: str, folder_ids: list[str]) -> dict[str, ShareGrant]:
        if not folder_ids:
            return {}
        result = await self.session.execute(
            select(FolderShareModel).where(
                FolderShareModel.shared_with_user_id == user_id,
                FolderShareModel.folder_id.in_(folder_ids),
            )
        )
        return {
            share.folder_id: ShareGrant(
                folder_id=share.folder_id,
                permission=Permission(share.permission_level),
                include_subfolders=share.include_subfolders,
            )
            for share in result.scalars().all()
        }

    async def resolve_access(self, folder_id: str, user_id: str) -> FolderAccess:
        """
        Decide what a user may do with a folder.

        Raises:
            NotFound: Folder does not exist
            AccessDenied: No applicable share
            CorruptHierarchy: Broken ancestor chain
        """
        folder = await self.get_folder(folder_id)
        if folder.user_id == user_id:
            return FolderAccess(folder, folder.user_id, Permission.READ_WRITE, is_owner=True)

        chain = await self.ancestor_chain(folder_id)
        grants = await self._grants_for(user_id, chain)
        permission = resolve_share_permission(chain, grants)
        if permission is None:
            raise AccessDenied(f"User {user_id} has no access to folder {folder_id}")

        return FolderAccess(folder, folder.user_id, permission, is_owner=False)

    async def require_access(
        self,
        folder_id: str,
        user_id: str,
        write: bool = False,
    ) -> FolderAccess:
        """resolve_access that also rejects writes through read-only shares."""
        access = await self.resolve_access(folder_id, user_id)
        if write and not access.can_write:
            raise AccessDenied(
                f"User {user_id} has read-only access to folder {folder_id}",
                "You have read-only access to this folder.",
            )
        return access

    async def list_accessible_children(
        self,
        parent_id: str,
        user_id: str,
    ) -> tuple[FolderAccess, list[FolderModel]]:
        """
        Subfolders of a folder that the user can open.

        Owners see every child. Sharees see the children their nearest
        share reaches, so a non-cascading share shows none unless a child
        carries its own share.
        """
        access = await self.resolve_access(parent_id, user_id)
        children = await self.list_folders(access.owner_id, parent_id)
        if access.is_owner:
            return access, children

        chain = await self.ancestor_chain(parent_id)
        grants = await self._grants_for(user_id, chain + [child.id for child in children])
        visible = [
            child
            for child in children
            if resolve_share_permission([child.id] + chain, grants) is not None
        ]
        return access, visible

    # ============ Mutations ============

    async def create_folder(
        self,
        owner_id: str,
        name: str,
        parent_id: Optional[str] = None,
    ) -> FolderModel:
        """
        Create a folder in the owner's tree.

        Raises:
            InvalidFolderName: Name empty after sanitizing
            NotFound: Parent does not exist
            NotOwner: Parent belongs to someone else
        """
        clean_name = sanitize_folder_name(name)
        if parent_id is not None:
            await self._get_owned(parent_id, owner_id)
            depth = len(await self.ancestor_chain(parent_id))
            if depth >= settings.folder_max_depth:
                raise InvalidFolderMove(
                    f"Folder {parent_id} is already at max depth",
                    "Folders cannot be nested this deeply.",
                )

        folder = FolderModel(user_id=owner_id, name=clean_name, parent_folder_id=parent_id)
        self.session.add(folder)
        await self.session.flush()
        logger.info(f"Created folder {folder.id} for user {owner_id}")
        return folder

    async def rename_folder(self, folder_id: str, owner_id: str, new_name: str) -> FolderModel:
        folder = await self._get_owned(folder_id, owner_id)
        folder.name = sanitize_folder_name(new_name)
        folder.updated_at = utcnow()
        await self.session.flush()
        return folder

    async def move_folder(
        self,
        folder_id: str,
        owner_id: str,
        new_parent_id: Optional[str],
    ) -> FolderModel:
        """
        Re-parent a folder within its owner's tree.

        Raises:
            InvalidFolderMove: Target is the folder itself or a descendant, or
                the moved subtree would end up deeper than ``folder_max_depth``
        """
        folder = await self._get_owned(folder_id, owner_id)
        if new_parent_id is not None:
            await self._get_owned(new_parent_id, owner_id)
            chain = await self.ancestor_chain(new_parent_id)
            if folder_id in chain:
                raise InvalidFolderMove(
                    f"Cannot move folder {folder_id} into its descendant {new_parent_id}"
                )
            if len(chain) + await self.subtree_height(folder_id) > settings.folder_max_depth:
                raise InvalidFolderMove(
                    f"Moving folder {folder_id} under {new_parent_id} exceeds max depth",
                    "Folders cannot be nested this deeply.",
                )

        folder.parent_folder_id = new_parent_id
        folder.updated_at = utcnow()
        await self.session.flush()
        return folder

    async def delete_folder(
        self,
        folder_id: str,
        owner_id: str,
        delete_contents: bool = False,
    ) -> None:
        """
        Delete a folder.

        With ``delete_contents`` the folder's subfolders and media move up to
        its parent; without it a non-empty folder is refused. Shares on the
        folder are removed with it.

        Raises:
            FolderNotEmpty: Folder has children and ``delete_contents`` is False
        """
        folder = await self._get_owned(folder_id, owner_id)

        subfolder_count = await self.session.scalar(
            select(func.count()).select_from(FolderModel).where(FolderModel.parent_folder_id == folder_id)
        )
        media_count = await self.session.scalar(
            select(func.count()).select_from(UserMediaModel).where(UserMediaModel.folder_id == folder_id)
        )

        if (subfolder_count or media_count) and not delete_contents:
            raise FolderNotEmpty(
                f"Folder {folder_id} has {subfolder_count} subfolders and {media_count} media"
            )

        now = utcnow()
        if subfolder_count:
            await self.session.execute(
                update(FolderModel)
                .where(FolderModel.parent_folder_id == folder_id)
                .values(parent_folder_id=folder.parent_folder_id, updated_at=now)
            )
        if media_count:
            await self.session.execute(
                update(UserMediaModel)
                .where(UserMediaModel.folder_id == folder_id)
                .values(folder_id=folder.parent_folder_id, updated_at=now)
            )

        await self.session.execute(
            delete(FolderShareModel).where(FolderShareModel.folder_id == folder_id)
        )
        await self.session.delete(folder)
        await self.session.flush()
        logger.info(f"Deleted folder {folder_id} for user {owner_id}")
