"""Error taxonomy for the VK channel handler."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vkbridge.models import MsgStatus


class ChannelError(Exception):
    """Base class for failures surfaced to the webhook responder or send invoker."""

    status_code = 400


class BodyReadError(ChannelError):
    """Raised when the inbound body cannot be read or exceeds the size cap."""

    def __init__(self, message: str, too_large: bool = False) -> None:
        self.too_large = too_large
        if too_large:
            self.status_code = 413
        super().__init__(message)


class MalformedPayloadError(ChannelError):
    """Raised when the body does not match the envelope or new-message shape."""


class AuthenticationError(ChannelError):
    """Raised when the webhook secret does not match the channel secret."""

    status_code = 401


class UnsupportedEventError(ChannelError):
    """Raised for event types the handler does not process. Never a failure."""

    status_code = 200

    def __init__(self, event_type: str) -> None:
        self.event_type = event_type
        super().__init__(
            "ignoring request, no message or server verification event",
        )


class BackendWriteError(ChannelError):
    """Raised when the backend fails to persist an inbound message."""

    status_code = 500


class UserLookupError(ChannelError):
    """Raised when the sender's profile cannot be fetched. Non-fatal."""


class MediaUploadError(ChannelError):
    """Raised when an outbound attachment cannot be uploaded to VK."""


class SendError(ChannelError):
    """Base for outbound failures. Carries the status of the attempt."""

    status_code = 502

    def __init__(self, message: str, status: MsgStatus | None = None) -> None:
        self.status = status
        super().__init__(message)


class BuildError(SendError):
    """Raised when the outbound request cannot be constructed."""

    status_code = 500


class TransportError(SendError):
    """Raised when the outbound call fails at the network or HTTP level."""


class UnexpectedResponseError(SendError):
    """Raised when the VK response lacks the expected success key."""
