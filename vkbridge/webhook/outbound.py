"""Construction of outbound VK API requests."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from vkbridge.models import ChannelConfig, OutboundMessage
from vkbridge.webhook.errors import BuildError, ChannelError

if TYPE_CHECKING:
    from vkbridge.webhook.media import MediaUploader

logger = logging.getLogger(__name__)

SCHEME = "vk"

API_BASE_URL = "https://api.vk.com/method"
API_VERSION = "5.103"
SEND_MESSAGE_PATH = "/messages.send.json"

PARAM_API_VERSION = "v"
PARAM_ACCESS_TOKEN = "access_token"
PARAM_USER_ID = "user_id"
PARAM_MESSAGE = "message"
PARAM_ATTACHMENT = "attachment"
PARAM_RANDOM_ID = "random_id"

# Community peers have negative ids
_USER_ID_RE = re.compile(r"-?[0-9]+")


@dataclass
class RenderedAttachments:
    """Comma-joined attachment references plus the attachments that failed."""

    param: str = ""
    failures: list[str] = field(default_factory=list)


def build_api_base_params(channel: ChannelConfig) -> dict[str, str]:
    """Parameters every VK API call carries."""
    return {
        PARAM_API_VERSION: API_VERSION,
        PARAM_ACCESS_TOKEN: channel.access_token,
    }


def build_send_params(
    channel: ChannelConfig, msg: OutboundMessage, attachment_param: str = "",
) -> dict[str, str]:
    """Parameters for ``messages.send``.

    ``random_id`` is the host message id: VK drops a second send that reuses
    it, so a retried message is never delivered twice.
    """
    if msg.urn.scheme != SCHEME:
        raise BuildError(f"cannot send to non-{SCHEME} URN: {msg.urn}")
    if not _USER_ID_RE.fullmatch(msg.urn.path):
        raise BuildError(f"invalid {SCHEME} user id: {msg.urn.path!r}")

    params = build_api_base_params(channel)
    params[PARAM_USER_ID] = msg.urn.path
    params[PARAM_MESSAGE] = msg.text
    params[PARAM_RANDOM_ID] = msg.id
    params[PARAM_ATTACHMENT] = attachment_param
    return params


def build_send_request(
    client: httpx.AsyncClient, url: str, params: dict[str, str],
) -> httpx.Request:
    """Build the query-encoded POST request for ``messages.send``."""
    try:
        return client.build_request("POST", url, params=params)
    except (httpx.InvalidURL, TypeError, ValueError) as exc:
        raise BuildError(f"cannot create send message request: {exc}") from exc


def split_attachment(attachment: str) -> tuple[str, str]:
    """Split ``content-type:url`` into its parts."""
    content_type, sep, url = attachment.partition(":")
    if not sep or not url:
        return "", attachment
    return content_type, url


async def render_attachments(
    channel: ChannelConfig,
    msg: OutboundMessage,
    uploader: MediaUploader | None,
) -> RenderedAttachments:
    """Upload each attachment and join the resulting references with commas.

    Attachments that cannot be rendered are reported in ``failures`` and left
    out of the parameter.
    """
    rendered = RenderedAttachments()
    refs: list[str] = []
    for attachment in msg.attachments:
        if uploader is None:
            rendered.failures.append(f"{attachment}: no media uploader configured")
            continue
        content_type, url = split_attachment(attachment)
        try:
            refs.append(await uploader.upload(channel, content_type, url))
        except ChannelError as exc:
            logger.warning(
                "Unable to render attachment for msg %s on channel %s: %s",
                msg.id, channel.uuid, exc,
            )
            rendered.failures.append(f"{attachment}: {exc}")
    rendered.param = ",".join(refs)
    return rendered
