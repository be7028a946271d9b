"""
Media upload and retrieval endpoints.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, Query, Response, UploadFile, status
from pydantic import BaseModel

from mediavault.api.deps import ContextDep, SessionDep
from mediavault.config import settings
from mediavault.core.exceptions import InvalidUpload
from mediavault.models.schemas import MediaResponse, SuccessResponse
from mediavault.services.media_service import MediaService

router = APIRouter()


class MediaListResponse(BaseModel):
    """Paginated media list response."""

    media: list[MediaResponse]
    limit: int
    offset: int


async def read_upload(file: UploadFile, max_size: int) -> bytes:
    """Read an upload after checking its size without loading oversized files."""
    file.file.seek(0, 2)  # Seek to end
    size = file.file.tell()
    file.file.seek(0)  # Reset to beginning

    if size > max_size:
        raise InvalidUpload(
            f"Upload of {size} bytes exceeds {max_size}",
            f"File too large. Maximum size: {max_size // (1024 * 1024)}MB",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )
    return await file.read()


@router.get("/", response_model=MediaListResponse)
async def list_media(
    context: ContextDep,
    session: SessionDep,
    folderId: Optional[str] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    """List media in a folder the caller can read, or the caller's unfiled media."""
    items = await MediaService(session).list_media(context.user_id, folderId, offset, limit)
    return MediaListResponse(
        media=[MediaResponse.from_model(m) for m in items],
        limit=limit,
        offset=offset,
    )


@router.post("/upload", response_model=MediaResponse, status_code=status.HTTP_201_CREATED)
async def upload_media(
    context: ContextDep,
    session: SessionDep,
    file: UploadFile = File(...),
    folderId: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
):
    """
    Upload an image (JPEG, PNG, GIF or WebP, at most 10MB).

    The file is encrypted before it is written to disk. Uploading into a
    shared folder requires read-write access.
    """
    data = await read_upload(file, settings.max_upload_size)
    media = await MediaService(session).save_media(
        user_id=context.user_id,
        file_name=file.filename or "upload",
        content_type=file.content_type,
        data=data,
        folder_id=folderId or None,
        description=description,
    )
    return MediaResponse.from_model(media)


@router.get("/{media_id}", response_model=MediaResponse)
async def get_media(media_id: str, context: ContextDep, session: SessionDep):
    media = await MediaService(session).get_media(media_id, context.user_id)
    return MediaResponse.from_model(media)


@router.get("/{media_id}/content")
async def get_media_content(media_id: str, context: ContextDep, session: SessionDep):
    """Decrypted image bytes with their original content type."""
    media, data = await MediaService(session).read_content(media_id, context.user_id)
    return Response(
        content=data,
        media_type=media.mime_type,
        headers={"Cache-Control": "private, max-age=3600"},
    )


@router.delete("/{media_id}", response_model=SuccessResponse)
async def delete_media(
    media_id: str,
    context: ContextDep,
    session: SessionDep,
    background_tasks: BackgroundTasks,
):
    """Delete an image; its encrypted file is removed after the delete commits."""
    service = MediaService(session)
    file_path = await service.delete_media(media_id, context.user_id)
    await session.commit()
    background_tasks.add_task(service.discard_file, file_path)
    return SuccessResponse(message="Media deleted.")
