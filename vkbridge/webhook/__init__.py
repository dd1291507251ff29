"""VK channel handler.

This package translates between the VK Callback API / REST API and the
host's canonical messages:
- Event decoding, secret validation and dispatch
- Inbound message mapping and attachment extraction
- Outbound request building, media upload and response interpretation
"""

from vkbridge.webhook.attachments import take_first_attachment_url
from vkbridge.webhook.errors import (
    AuthenticationError,
    BackendWriteError,
    BodyReadError,
    BuildError,
    ChannelError,
    MalformedPayloadError,
    MediaUploadError,
    SendError,
    TransportError,
    UnexpectedResponseError,
    UnsupportedEventError,
    UserLookupError,
)
from vkbridge.webhook.models import ReceiveResult, WebhookResponse
from vkbridge.webhook.vk import VKHandler, new_handler

__all__ = [
    "AuthenticationError",
    "BackendWriteError",
    "BodyReadError",
    "BuildError",
    "ChannelError",
    "MalformedPayloadError",
    "MediaUploadError",
    "ReceiveResult",
    "SendError",
    "TransportError",
    "UnexpectedResponseError",
    "UnsupportedEventError",
    "UserLookupError",
    "VKHandler",
    "WebhookResponse",
    "new_handler",
    "take_first_attachment_url",
]
