"""Upload of outbound media to VK so it can be referenced in ``messages.send``.

VK does not accept external URLs as message attachments. Images are uploaded
in three steps:

1. ``photos.getMessagesUploadServer`` returns a one-off upload URL;
2. the image bytes are posted there as multipart field ``photo``;
3. ``photos.saveMessagesPhoto`` turns the upload into a stored photo, which is
   referenced as ``photo<owner_id>_<id>``.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from vkbridge.models import ChannelConfig
from vkbridge.webhook.errors import MediaUploadError
from vkbridge.webhook.outbound import API_BASE_URL, build_api_base_params

logger = logging.getLogger(__name__)

GET_UPLOAD_SERVER_PATH = "/photos.getMessagesUploadServer.json"
SAVE_PHOTO_PATH = "/photos.saveMessagesPhoto.json"


class MediaUploader(Protocol):
    async def upload(self, channel: ChannelConfig, content_type: str, url: str) -> str: ...


class VKPhotoUploader:
    """Uploads ``image/*`` attachments as message photos."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base_url: str = API_BASE_URL,
    ) -> None:
        self._client = client
        self._api_base_url = api_base_url.rstrip("/")

    async def upload(self, channel: ChannelConfig, content_type: str, url: str) -> str:
        if not content_type.startswith("image"):
            raise MediaUploadError(f"unsupported attachment type: {content_type or 'unknown'}")

        server = await self._call(channel, GET_UPLOAD_SERVER_PATH, {})
        upload_url = server.get("upload_url") if isinstance(server, dict) else None
        if not isinstance(upload_url, str) or not upload_url:
            raise MediaUploadError("no upload_url in upload server response")

        media = await self._request("GET", url)
        filename = url.rsplit("/", 1)[-1] or "photo.jpg"
        uploaded = self._json(
            await self._request(
                "POST", upload_url,
                files={"photo": (filename, media.content, content_type)},
            ),
        )
        if not isinstance(uploaded, dict) or not uploaded.get("photo"):
            raise MediaUploadError("upload server did not accept the photo")

        saved = await self._call(channel, SAVE_PHOTO_PATH, {
            "server": str(uploaded.get("server", "")),
            "photo": str(uploaded["photo"]),
            "hash": str(uploaded.get("hash", "")),
        })
        if not isinstance(saved, list) or not saved or not isinstance(saved[0], dict):
            raise MediaUploadError("no photo in saveMessagesPhoto response")
        photo = saved[0]
        logger.debug("Uploaded photo %s for channel %s", photo.get("id"), channel.uuid)
        return f"photo{photo.get('owner_id')}_{photo.get('id')}"

    async def _call(self, channel: ChannelConfig, path: str, extra: dict[str, str]) -> Any:
        params = build_api_base_params(channel)
        params.update(extra)
        data = self._json(
            await self._request("POST", f"{self._api_base_url}{path}", params=params),
        )
        if not isinstance(data, dict) or "response" not in data:
            error = data.get("error") if isinstance(data, dict) else None
            detail = error.get("error_msg") if isinstance(error, dict) else "no response"
            raise MediaUploadError(f"{path.strip('/')} failed: {detail}")
        return data["response"]

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise MediaUploadError(f"{method} {url} failed: {exc}") from exc
        if resp.status_code // 100 != 2:
            raise MediaUploadError(f"{method} {url} returned status {resp.status_code}")
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise MediaUploadError("invalid JSON from VK") from exc
