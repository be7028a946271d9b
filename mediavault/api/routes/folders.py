"""
Folder endpoints: browsing (own and shared), breadcrumbs and owner-only
mutations.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from mediavault.api.deps import ContextDep, SessionDep
from mediavault.models.schemas import FolderResponse, SuccessResponse
from mediavault.services.folder_service import FolderService, SharedFolder


router = APIRouter()


class FolderView(str, Enum):
    OWN = "own"
    SHARED = "shared"
    ALL = "all"


# Request/Response Models
class CreateFolderRequest(BaseModel):
    name: str = Field(..., min_length=1)
    parentFolderId: Optional[str] = None


class RenameFolderRequest(BaseModel):
    newName: str = Field(..., min_length=1)


class MoveFolderRequest(BaseModel):
    newParentFolderId: Optional[str] = None


class SharedFolderResponse(FolderResponse):
    """A folder shared with the caller."""

    ownerId: str
    ownerUsername: str
    permission: str
    includeSubfolders: bool
    sharedAt: datetime

    @classmethod
    def from_shared(cls, shared: SharedFolder) -> "SharedFolderResponse":
        base = FolderResponse.from_model(shared.folder)
        return cls(
            **base.model_dump(),
            ownerId=shared.owner_id,
            ownerUsername=shared.owner_username,
            permission=shared.permission.value,
            includeSubfolders=shared.include_subfolders,
            sharedAt=shared.shared_at,
        )


class FolderListResponse(BaseModel):
    """Contents of a folder, or the caller's top level."""

    folderId: Optional[str] = None
    ownerId: Optional[str] = None
    permission: Optional[str] = None
    isOwner: bool = True
    folders: list[FolderResponse] = []
    sharedFolders: list[SharedFolderResponse] = []


@router.get("/", response_model=FolderListResponse)
async def list_folders(
    context: ContextDep,
    session: SessionDep,
    folderId: Optional[str] = None,
    view: FolderView = FolderView.OWN,
):
    """
    List folders.

    At the top level, ``view`` picks the caller's root folders, the folders
    shared with them, or both. Inside a folder it lists the subfolders the
    caller can open.
    """
    folder_service = FolderService(session)

    if folderId is not None:
        access, children = await folder_service.list_accessible_children(folderId, context.user_id)
        return FolderListResponse(
            folderId=folderId,
            ownerId=access.owner_id,
            permission=access.permission.value,
            isOwner=access.is_owner,
            folders=[FolderResponse.from_model(f) for f in children],
        )

    response = FolderListResponse(ownerId=context.user_id, permission="read_write")
    if view in (FolderView.OWN, FolderView.ALL):
        roots = await folder_service.list_folders(context.user_id)
        response.folders = [FolderResponse.from_model(f) for f in roots]
    if view in (FolderView.SHARED, FolderView.ALL):
        shared = await folder_service.list_shared_folders(context.user_id)
        response.sharedFolders = [SharedFolderResponse.from_shared(s) for s in shared]
    return response


@router.get("/path", response_model=list[FolderResponse])
async def get_folder_path(
    context: ContextDep,
    session: SessionDep,
    folderId: Optional[str] = None,
):
    """Breadcrumbs from the top of the caller's visible tree to a folder."""
    if folderId is None:
        return []
    path = await FolderService(session).resolve_visible_path(folderId, context.user_id)
    return [FolderResponse.from_model(f) for f in path]


@router.get("/shared-with-me", response_model=list[SharedFolderResponse])
async def get_shared_with_me(context: ContextDep, session: SessionDep):
    """Folders other users have shared directly with the caller."""
    shared = await FolderService(session).list_shared_folders(context.user_id)
    return [SharedFolderResponse.from_shared(s) for s in shared]


@router.post("/", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(request: CreateFolderRequest, context: ContextDep, session: SessionDep):
    """Create a folder in the caller's tree."""
    folder = await FolderService(session).create_folder(
        context.user_id, request.name, request.parentFolderId
    )
    return FolderResponse.from_model(folder)


@router.put("/{folder_id}/rename", response_model=FolderResponse)
async def rename_folder(
    folder_id: str,
    request: RenameFolderRequest,
    context: ContextDep,
    session: SessionDep,
):
    folder = await FolderService(session).rename_folder(folder_id, context.user_id, request.newName)
    return FolderResponse.from_model(folder)


@router.put("/{folder_id}/move", response_model=FolderResponse)
async def move_folder(
    folder_id: str,
    request: MoveFolderRequest,
    context: ContextDep,
    session: SessionDep,
):
    """Move a folder under another of the caller's folders, or to the top level."""
    folder = await FolderService(session).move_folder(
        folder_id, context.user_id, request.newParentFolderId
    )
    return FolderResponse.from_model(folder)


@router.delete("/{folder_id}", response_model=SuccessResponse)
async def delete_folder(
    folder_id: str,
    context: ContextDep,
    session: SessionDep,
    deleteContents: bool = Query(False, description="Move contents to the parent folder"),
):
    """
    Delete a folder.

    A folder with contents is only deleted with ``deleteContents``, which
    moves its subfolders and media up to its parent.
    """
    await FolderService(session).delete_folder(folder_id, context.user_id, deleteContents)
    return SuccessResponse(message="Folder deleted.")
