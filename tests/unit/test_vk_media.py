"""Tests for outbound photo upload."""

from __future__ import annotations

import httpx
import pytest

from tests.conftest import API_BASE, make_channel, make_client
from vkbridge.webhook.errors import MediaUploadError
from vkbridge.webhook.media import VKPhotoUploader

UPLOAD_URL = "https://pu.vk.test/upload"
MEDIA_URL = "https://example.com/images/cat.jpg"


def _vk_api(
    save_response: dict | None = None,
    upload_response: dict | None = None,
    seen: list[httpx.Request] | None = None,
):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        url = str(request.url)
        if url.startswith(f"{API_BASE}/photos.getMessagesUploadServer.json"):
            return httpx.Response(200, json={"response": {"upload_url": UPLOAD_URL}})
        if url == MEDIA_URL:
            return httpx.Response(200, content=b"\xff\xd8jpeg-bytes")
        if url == UPLOAD_URL:
            return httpx.Response(200, json=upload_response or {
                "server": 1, "photo": "[{\"photo\":\"abc\"}]", "hash": "h4sh",
            })
        if url.startswith(f"{API_BASE}/photos.saveMessagesPhoto.json"):
            return httpx.Response(200, json=save_response or {
                "response": [{"id": 457239017, "owner_id": -1}],
            })
        return httpx.Response(404)

    return handler


@pytest.mark.asyncio
async def test_upload_returns_photo_reference() -> None:
    seen: list[httpx.Request] = []
    uploader = VKPhotoUploader(make_client(_vk_api(seen=seen)), api_base_url=API_BASE)

    ref = await uploader.upload(make_channel(), "image/jpeg", MEDIA_URL)

    assert ref == "photo-1_457239017"
    assert len(seen) == 4
    upload = seen[2]
    assert str(upload.url) == UPLOAD_URL
    assert b"jpeg-bytes" in upload.read()
    save = seen[3]
    assert save.url.params["hash"] == "h4sh"
    assert save.url.params["server"] == "1"


@pytest.mark.asyncio
async def test_non_image_rejected_without_requests() -> None:
    seen: list[httpx.Request] = []
    uploader = VKPhotoUploader(make_client(_vk_api(seen=seen)), api_base_url=API_BASE)
    with pytest.raises(MediaUploadError, match="unsupported"):
        await uploader.upload(make_channel(), "video/mp4", "https://example.com/a.mp4")
    assert seen == []


@pytest.mark.asyncio
async def test_rejected_upload_fails() -> None:
    uploader = VKPhotoUploader(
        make_client(_vk_api(upload_response={"server": 1, "photo": "", "hash": ""})),
        api_base_url=API_BASE,
    )
    with pytest.raises(MediaUploadError, match="did not accept"):
        await uploader.upload(make_channel(), "image/jpeg", MEDIA_URL)


@pytest.mark.asyncio
async def test_save_error_fails() -> None:
    error = {"error": {"error_code": 100, "error_msg": "invalid hash"}}
    uploader = VKPhotoUploader(make_client(_vk_api(save_response=error)), api_base_url=API_BASE)
    with pytest.raises(MediaUploadError, match="invalid hash"):
        await uploader.upload(make_channel(), "image/jpeg", MEDIA_URL)


@pytest.mark.asyncio
async def test_unreachable_media_fails() -> None:
    uploader = VKPhotoUploader(make_client(_vk_api()), api_base_url=API_BASE)
    with pytest.raises(MediaUploadError, match="404"):
        await uploader.upload(make_channel(), "image/png", "https://example.com/missing.png")


@pytest.mark.asyncio
async def test_malformed_media_url_fails() -> None:
    uploader = VKPhotoUploader(make_client(_vk_api()), api_base_url=API_BASE)
    with pytest.raises(MediaUploadError, match="failed"):
        await uploader.upload(make_channel(), "image/png", "http://[::1")
