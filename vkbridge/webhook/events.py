"""VK Callback API event decoding, secret validation and dispatch.

Every inbound body is decoded twice: first into the minimal envelope that
carries the event type and the shared secret, then, once the secret has been
checked, into exactly one typed variant chosen by the event type.
"""

from __future__ import annotations

import hmac
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, Field, StrictInt, ValidationError

from vkbridge.models import ChannelConfig
from vkbridge.webhook.errors import (
    AuthenticationError,
    BodyReadError,
    MalformedPayloadError,
    UnsupportedEventError,
)

MAX_BODY_SIZE = 100_000

EVENT_TYPE_CONFIRMATION = "confirmation"
EVENT_TYPE_MESSAGE_NEW = "message_new"


def _non_zero(value: int) -> int:
    if value == 0:
        raise ValueError("value is required")
    return value


RequiredInt = Annotated[StrictInt, AfterValidator(_non_zero)]


class InboundEnvelope(BaseModel):
    """Fields shared by every Callback API event."""

    type: str = ""
    secret: str = ""


class Coordinates(BaseModel):
    latitude: float = 0.0
    longitude: float = 0.0


class Geo(BaseModel):
    coordinates: Coordinates = Field(default_factory=Coordinates)


class MessagePayload(BaseModel):
    id: RequiredInt
    date: RequiredInt
    from_id: RequiredInt
    text: str = ""
    attachments: Any = None
    geo: Geo | None = None


class MessageObject(BaseModel):
    message: MessagePayload


class NewMessageEvent(BaseModel):
    """Body of a ``message_new`` event."""

    obj: MessageObject = Field(alias="object")

    @property
    def message(self) -> MessagePayload:
        return self.obj.message


@dataclass(frozen=True)
class ServerVerification:
    """VK asks the server to echo the channel's verification string."""


@dataclass(frozen=True)
class NewMessage:
    event: NewMessageEvent


InboundEvent = ServerVerification | NewMessage


def check_body_size(body: bytes, limit: int = MAX_BODY_SIZE) -> None:
    if len(body) > limit:
        raise BodyReadError(
            f"request body exceeds maximum size of {limit} bytes", too_large=True,
        )


def decode_envelope(body: bytes) -> InboundEnvelope:
    try:
        return InboundEnvelope.model_validate_json(body)
    except ValidationError as exc:
        raise MalformedPayloadError(f"unable to parse request JSON: {_summarize(exc)}") from exc


def validate_secret(envelope: InboundEnvelope, channel: ChannelConfig) -> None:
    """Reject the event unless it carries the channel's shared secret.

    The expected secret never appears in the raised error.
    """
    if not hmac.compare_digest(
        envelope.secret.encode(), channel.shared_secret.encode(),
    ):
        raise AuthenticationError("wrong secret key")


def _decode_confirmation(body: bytes) -> InboundEvent:
    return ServerVerification()


def _decode_new_message(body: bytes) -> InboundEvent:
    try:
        return NewMessage(NewMessageEvent.model_validate_json(body))
    except ValidationError as exc:
        raise MalformedPayloadError(f"invalid message_new event: {_summarize(exc)}") from exc


EVENT_TYPES: dict[str, Callable[[bytes], InboundEvent]] = {
    EVENT_TYPE_CONFIRMATION: _decode_confirmation,
    EVENT_TYPE_MESSAGE_NEW: _decode_new_message,
}


def parse_event(envelope: InboundEnvelope, body: bytes) -> InboundEvent:
    """Decode ``body`` into the variant registered for the envelope's type."""
    decoder = EVENT_TYPES.get(envelope.type)
    if decoder is None:
        raise UnsupportedEventError(envelope.type)
    return decoder(body)


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "body"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)
