"""
API tests for media upload and retrieval endpoints.
"""

import io

import pytest
from PIL import Image

from fastapi import status

from mediavault.config import settings


def png_bytes(width: int = 5, height: int = 4) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(0, 128, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


async def upload(client, headers, data=None, content_type="image/png", **form):
    return await client.post(
        "/api/media/upload",
        files={"file": ("photo.png", data if data is not None else png_bytes(), content_type)},
        data=form,
        headers=headers,
    )


class TestMediaEndpoints:
    """Tests for /api/media."""

    @pytest.mark.asyncio
    async def test_upload_and_download(self, test_client, auth_headers, media_root):
        data = png_bytes(12, 9)

        response = await upload(test_client, auth_headers, data, description="Sky")

        assert response.status_code == status.HTTP_201_CREATED
        media = response.json()
        assert media["width"] == 12
        assert media["height"] == 9
        assert media["fileSize"] == len(data)
        assert media["description"] == "Sky"
        assert "filePath" not in media

        content = await test_client.get(f"/api/media/{media['id']}/content", headers=auth_headers)
        assert content.status_code == status.HTTP_200_OK
        assert content.headers["content-type"] == "image/png"
        assert content.content == data

    @pytest.mark.asyncio
    async def test_list_and_delete(self, test_client, auth_headers, media_root):
        media = (await upload(test_client, auth_headers)).json()

        listing = await test_client.get("/api/media/", headers=auth_headers)
        assert [m["id"] for m in listing.json()["media"]] == [media["id"]]
        assert listing.json()["limit"] == 20

        assert len(list(media_root.rglob("*.enc"))) == 1
        deleted = await test_client.delete(f"/api/media/{media['id']}", headers=auth_headers)
        assert deleted.status_code == status.HTTP_200_OK
        assert list(media_root.rglob("*.enc")) == []

        missing = await test_client.get(f"/api/media/{media['id']}", headers=auth_headers)
        assert missing.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_rejects_wrong_type(self, test_client, auth_headers, media_root):
        response = await upload(test_client, auth_headers, b"%PDF-1.4", "application/pdf")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_upload"

    @pytest.mark.asyncio
    async def test_rejects_oversized(self, test_client, auth_headers, media_root, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_size", 64)

        response = await upload(test_client, auth_headers, b"x" * 65)

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE

    @pytest.mark.asyncio
    async def test_other_user_gets_404(self, test_client, auth_headers, other_headers, media_root):
        media = (await upload(test_client, auth_headers)).json()

        response = await test_client.get(f"/api/media/{media['id']}", headers=other_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_shared_folder_media(
        self, test_client, other_user, auth_headers, other_headers, media_root
    ):
        folder = (
            await test_client.post("/api/folders/", json={"name": "Family"}, headers=auth_headers)
        ).json()
        await test_client.post(
            "/api/folder-shares/",
            json={"folderId": folder["id"], "sharedWithUserId": other_user.id},
            headers=auth_headers,
        )
        media = (await upload(test_client, auth_headers, folderId=folder["id"])).json()

        listing = await test_client.get(
            "/api/media/", params={"folderId": folder["id"]}, headers=other_headers
        )
        assert [m["id"] for m in listing.json()["media"]] == [media["id"]]

        read_only_upload = await upload(test_client, other_headers, folderId=folder["id"])
        assert read_only_upload.status_code == status.HTTP_403_FORBIDDEN

        delete = await test_client.delete(f"/api/media/{media['id']}", headers=other_headers)
        assert delete.status_code == status.HTTP_403_FORBIDDEN
