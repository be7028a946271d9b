"""
Folder sharing endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel

from mediavault.api.deps import ContextDep, SessionDep
from mediavault.core.visibility import Permission
from mediavault.db.models import FolderShareModel
from mediavault.models.schemas import SuccessResponse, UserSummary
from mediavault.services.share_service import ShareService
from mediavault.services.user_service import UserService


router = APIRouter()


# Request/Response Models
class ShareFolderRequest(BaseModel):
    """Create or update a share."""

    folderId: str
    sharedWithUserId: str
    permission: Permission = Permission.READ_ONLY
    includeSubfolders: bool = True


class ShareResponse(BaseModel):
    id: str
    folderId: str
    ownerUserId: str
    sharedWithUserId: str
    permission: str
    includeSubfolders: bool
    createdAt: datetime
    username: str | None = None
    email: str | None = None

    @classmethod
    def from_model(
        cls,
        share: FolderShareModel,
        username: str | None = None,
        email: str | None = None,
    ) -> "ShareResponse":
        return cls(
            id=share.id,
            folderId=share.folder_id,
            ownerUserId=share.owner_user_id,
            sharedWithUserId=share.shared_with_user_id,
            permission=share.permission_level,
            includeSubfolders=share.include_subfolders,
            createdAt=share.created_at,
            username=username,
            email=email,
        )


@router.get("/", response_model=list[ShareResponse])
async def list_shares(folderId: str, context: ContextDep, session: SessionDep):
    """Shares of one of the caller's folders."""
    listings = await ShareService(session).list_folder_shares(folderId, context.user_id)
    return [
        ShareResponse.from_model(listing.share, listing.username, listing.email)
        for listing in listings
    ]


@router.post("/", response_model=ShareResponse, status_code=status.HTTP_201_CREATED)
async def share_folder(request: ShareFolderRequest, context: ContextDep, session: SessionDep):
    share = await ShareService(session).create_share(
        request.folderId,
        context.user_id,
        request.sharedWithUserId,
        request.permission,
        request.includeSubfolders,
    )
    return ShareResponse.from_model(share)


@router.put("/", response_model=ShareResponse)
async def update_share(request: ShareFolderRequest, context: ContextDep, session: SessionDep):
    """Change the permission or cascade flag of an existing share."""
    share = await ShareService(session).update_share(
        request.folderId,
        context.user_id,
        request.sharedWithUserId,
        request.permission,
        request.includeSubfolders,
    )
    return ShareResponse.from_model(share)


@router.delete("/", response_model=SuccessResponse)
async def unshare_folder(
    folderId: str,
    sharedWithUserId: str,
    context: ContextDep,
    session: SessionDep,
):
    """Revoke a share. Revoking a missing share succeeds."""
    await ShareService(session).revoke_share(folderId, context.user_id, sharedWithUserId)
    return SuccessResponse(message="Folder unshared.")


@router.get("/search-users", response_model=list[UserSummary])
async def search_users(context: ContextDep, session: SessionDep, query: str = ""):
    """Find verified users to share with (at least two characters)."""
    users = await UserService(session).search_users(query, context.user_id)
    return [UserSummary.from_model(u) for u in users]
