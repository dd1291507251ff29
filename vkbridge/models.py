"""Shared Pydantic data models for vkbridge."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

# --- Enums ---


class MsgStatusValue(str, Enum):
    ERRORED = "E"
    SENT = "S"
    DELIVERED = "D"


class AuditEventType(str, Enum):
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILURE = "auth_failure"
    WEBHOOK_REJECTED = "webhook_rejected"
    WEBHOOK_IGNORED = "webhook_ignored"
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_SENT = "message_sent"
    MESSAGE_FAILED = "message_failed"


class RiskLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


def _now() -> datetime:
    return datetime.now(UTC)


def _now_iso() -> str:
    return _now().isoformat()


# --- Identity ---


class URN(BaseModel):
    """Contact identity of the form ``scheme:path``."""

    model_config = ConfigDict(frozen=True)

    scheme: str
    path: str

    @classmethod
    def from_parts(cls, scheme: str, path: str | int) -> URN:
        return cls(scheme=scheme, path=str(path))

    @classmethod
    def parse(cls, value: str) -> URN:
        scheme, sep, path = value.partition(":")
        if not sep or not scheme or not path:
            raise ValueError(f"invalid URN: {value!r}")
        return cls(scheme=scheme, path=path)

    def __str__(self) -> str:
        return f"{self.scheme}:{self.path}"


def _coerce_urn(value: object) -> object:
    if isinstance(value, str):
        return URN.parse(value)
    return value


# Accepts "vk:123" on input and serialises back to the same string form.
URNField = Annotated[URN, BeforeValidator(_coerce_urn), PlainSerializer(str, return_type=str)]


# --- Channel Models ---

CONFIG_SECRET = "secret"
CONFIG_VERIFICATION_STRING = "callback_verification_string"
CONFIG_AUTH_TOKEN = "auth_token"


class ChannelConfig(BaseModel):
    """Per-channel configuration as handed out by the channel registry."""

    model_config = ConfigDict(frozen=True)

    uuid: str = Field(min_length=1)
    channel_type: str = "VK"
    name: str = ""
    config: dict[str, str] = Field(default_factory=dict)

    def string_config(self, key: str, default: str = "") -> str:
        return self.config.get(key, default)

    @property
    def shared_secret(self) -> str:
        return self.string_config(CONFIG_SECRET)

    @property
    def verification_string(self) -> str:
        return self.string_config(CONFIG_VERIFICATION_STRING)

    @property
    def access_token(self) -> str:
        return self.string_config(CONFIG_AUTH_TOKEN)

    def redacted(self) -> dict[str, object]:
        """Dump the channel with every config value masked."""
        data = self.model_dump()
        data["config"] = {k: "***" for k in self.config}
        return data


# --- Message Models ---


class CanonicalInboundMessage(BaseModel):
    """Host-neutral representation of a message received from VK."""

    channel_uuid: str
    urn: URNField
    text: str
    received_on: datetime
    external_id: str
    contact_name: str = ""
    attachments: list[str] = Field(default_factory=list)

    def with_contact_name(self, name: str) -> CanonicalInboundMessage:
        self.contact_name = name
        return self

    def with_attachment(self, url: str) -> CanonicalInboundMessage:
        self.attachments.append(url)
        return self


class OutboundMessage(BaseModel):
    """Message handed to the adapter by the host for delivery."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    channel_uuid: str
    urn: URNField
    text: str = ""
    attachments: list[str] = Field(default_factory=list)


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    first_name: str = ""
    last_name: str = ""


# --- Status Models ---

_TOKEN_RE = re.compile(r"(access_token=)[^&\s]*")


def redact_token(text: str) -> str:
    return _TOKEN_RE.sub(r"\1**********", text)


class ChannelLog(BaseModel):
    """Human-readable record of one HTTP exchange with the VK API."""

    description: str
    channel_uuid: str
    msg_id: str | None = None
    method: str = ""
    url: str = ""
    status_code: int | None = None
    request: str = ""
    response: str = ""
    error: str | None = None
    elapsed_ms: int = Field(default=0, ge=0)
    created_on: str = Field(default_factory=_now_iso)


class MsgStatus(BaseModel):
    """Outcome of a send attempt. Starts errored, moves to sent at most once."""

    channel_uuid: str
    msg_id: str
    status: MsgStatusValue = MsgStatusValue.ERRORED
    external_id: str | None = None
    logs: list[ChannelLog] = Field(default_factory=list)

    def add_log(self, log: ChannelLog) -> None:
        self.logs.append(log)

    def set_external_id(self, external_id: str) -> None:
        self.external_id = external_id

    def set_status(self, status: MsgStatusValue) -> None:
        self.status = status


# --- Audit Models ---


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    channel_uuid: str | None = None
    source_ip: str | None = None
    action: str
    result: str  # "success" | "failure" | "ignored"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
