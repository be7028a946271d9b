"""
Pydantic schemas shared across API routes.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from mediavault.db.models import FolderModel, UserMediaModel, UserModel


# ============ Common Schemas ============

class SuccessResponse(BaseModel):
    """Acknowledgement for operations without a payload."""

    success: bool = True
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Body of every domain error response."""

    detail: str = Field(..., description="Message safe to show to users")
    error: str = Field(..., description="Stable error code")


# ============ User Schemas ============

class UserSummary(BaseModel):
    """Public identity of a user."""

    id: str
    username: str
    email: str

    @classmethod
    def from_model(cls, user: UserModel) -> "UserSummary":
        return cls(id=user.id, username=user.username, email=user.email)


# ============ Folder Schemas ============

class FolderResponse(BaseModel):
    """Folder metadata."""

    id: str
    userId: str
    name: str
    parentFolderId: Optional[str]
    createdAt: datetime
    updatedAt: Optional[datetime]

    @classmethod
    def from_model(cls, folder: FolderModel) -> "FolderResponse":
        return cls(
            id=folder.id,
            userId=folder.user_id,
            name=folder.name,
            parentFolderId=folder.parent_folder_id,
            createdAt=folder.created_at,
            updatedAt=folder.updated_at,
        )


# ============ Media Schemas ============

class MediaResponse(BaseModel):
    """Media metadata (never the stored path)."""

    id: str
    userId: str
    folderId: Optional[str]
    fileName: str
    fileSize: int = Field(..., ge=0, description="Original size in bytes")
    mimeType: str
    width: Optional[int] = None
    height: Optional[int] = None
    description: Optional[str] = None
    createdAt: datetime

    @classmethod
    def from_model(cls, media: UserMediaModel) -> "MediaResponse":
        return cls(
            id=media.id,
            userId=media.user_id,
            folderId=media.folder_id,
            fileName=media.file_name,
            fileSize=media.file_size,
            mimeType=media.mime_type,
            width=media.width,
            height=media.height,
            description=media.description,
            createdAt=media.created_at,
        )
