"""Interpretation of the ``messages.send`` response body."""

from __future__ import annotations

import json

from vkbridge.webhook.errors import UnexpectedResponseError

RESPONSE_OUTGOING_MESSAGE_KEY = "response"


def interpret_send_response(body: bytes | str) -> str:
    """Return the VK message id from a successful send as a decimal string.

    Any body without an integer ``response`` value is a failure.
    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        data = None

    value = data.get(RESPONSE_OUTGOING_MESSAGE_KEY) if isinstance(data, dict) else None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)

    message = f"no '{RESPONSE_OUTGOING_MESSAGE_KEY}' value in response"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("error_msg"):
        message = f"{message} (VK error {error.get('error_code')}: {error['error_msg']})"
    raise UnexpectedResponseError(message)
