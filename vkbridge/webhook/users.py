"""Sender profile lookup through the VK ``users.get`` method."""

from __future__ import annotations

from typing import Protocol

import httpx
from pydantic import ValidationError

from vkbridge.models import ChannelConfig, UserProfile
from vkbridge.webhook.errors import UserLookupError
from vkbridge.webhook.outbound import API_BASE_URL, build_api_base_params

USERS_GET_PATH = "/users.get.json"


class UserLookup(Protocol):
    async def lookup(self, channel: ChannelConfig, user_id: int) -> UserProfile: ...


class VKUserLookup:
    """Resolves a numeric VK user id to the user's first and last name."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base_url: str = API_BASE_URL,
    ) -> None:
        self._client = client
        self._url = f"{api_base_url.rstrip('/')}{USERS_GET_PATH}"

    async def lookup(self, channel: ChannelConfig, user_id: int) -> UserProfile:
        params = build_api_base_params(channel)
        params["user_ids"] = str(user_id)

        try:
            resp = await self._client.post(self._url, params=params)
        except httpx.HTTPError as exc:
            raise UserLookupError(f"users.get request failed: {exc}") from exc

        if resp.status_code // 100 != 2:
            raise UserLookupError(f"users.get returned status {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise UserLookupError("users.get returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise UserLookupError("users.get returned an unexpected payload")
        error = data.get("error")
        if isinstance(error, dict):
            raise UserLookupError(
                f"users.get error {error.get('error_code')}: {error.get('error_msg', '')}",
            )
        users = data.get("response")
        if not isinstance(users, list) or not users:
            raise UserLookupError(f"no user found with id {user_id}")

        try:
            return UserProfile.model_validate(users[0])
        except ValidationError as exc:
            raise UserLookupError(f"invalid user payload for id {user_id}") from exc
