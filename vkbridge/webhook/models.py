"""Data models for the webhook request/response cycle."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from vkbridge.models import CanonicalInboundMessage

PLAIN_TEXT = "text/plain"
JSON = "application/json"


@dataclass
class WebhookResponse:
    """Response to return to the VK Callback API."""

    text: str
    status_code: int = 200
    media_type: str = PLAIN_TEXT


@dataclass
class ReceiveResult:
    """Outcome of one inbound webhook request."""

    response: WebhookResponse
    events: list[CanonicalInboundMessage] = field(default_factory=list)
    ignored: bool = False


def ignored_response(reason: str) -> WebhookResponse:
    body = {"message": "Ignored", "data": [{"type": "info", "info": reason}]}
    return WebhookResponse(text=json.dumps(body), status_code=200, media_type=JSON)


def error_body(reason: str) -> dict[str, object]:
    return {"message": "Error", "data": [{"type": "error", "error": reason}]}
