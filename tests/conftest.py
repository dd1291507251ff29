"""Shared test fixtures for vkbridge."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from vkbridge.audit.logger import AuditLogger
from vkbridge.backend import MemoryBackend
from vkbridge.models import (
    URN,
    AuditEvent,
    AuditEventType,
    ChannelConfig,
    OutboundMessage,
    RiskLevel,
    UserProfile,
)
from vkbridge.webhook.errors import UserLookupError
from vkbridge.webhook.vk import VKHandler

CHANNEL_UUID = "8eb23e93-5ecb-45ba-b726-3b064e0c56ab"
SECRET = "shared-secret"
VERIFICATION_STRING = "a1b2c3d4"
ACCESS_TOKEN = "vk-access-token"
API_BASE = "https://api.vk.test/method"


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


@pytest.fixture
def channel() -> ChannelConfig:
    return make_channel()


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


# --- Factory functions for test data ---


def make_channel(**config: str) -> ChannelConfig:
    """Factory for ChannelConfig with sensible defaults."""
    defaults = {
        "secret": SECRET,
        "callback_verification_string": VERIFICATION_STRING,
        "auth_token": ACCESS_TOKEN,
    }
    defaults.update(config)
    return ChannelConfig(uuid=CHANNEL_UUID, name="VK test", config=defaults)


def make_outbound_message(**kwargs: Any) -> OutboundMessage:
    defaults: dict[str, Any] = {
        "id": "10",
        "channel_uuid": CHANNEL_UUID,
        "urn": URN.from_parts("vk", 123456),
        "text": "hello",
        "attachments": [],
    }
    defaults.update(kwargs)
    return OutboundMessage(**defaults)


def make_audit_event(**kwargs: Any) -> AuditEvent:
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.WEBHOOK_REJECTED,
        "action": "receive:message_new",
        "result": "failure",
        "risk_level": RiskLevel.HIGH,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)


def make_message_new(
    secret: str = SECRET,
    msg_id: int = 1,
    date: int = 1580125939,
    from_id: int = 123456,
    text: str = "hello world",
    attachments: list[Any] | None = None,
    geo: dict[str, Any] | None = None,
) -> dict[str, Any]:
    message: dict[str, Any] = {
        "id": msg_id,
        "date": date,
        "from_id": from_id,
        "text": text,
        "attachments": attachments if attachments is not None else [],
    }
    if geo is not None:
        message["geo"] = geo
    return {
        "type": "message_new",
        "secret": secret,
        "group_id": 1,
        "object": {"message": message},
    }


def to_body(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode()


def make_user_lookup(
    first_name: str = "John", last_name: str = "Doe", fail: bool = False,
) -> AsyncMock:
    lookup = AsyncMock()
    if fail:
        lookup.lookup.side_effect = UserLookupError("lookup failed")
    else:
        lookup.lookup.return_value = UserProfile(
            id=123456, first_name=first_name, last_name=last_name,
        )
    return lookup


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """httpx client whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_handler(
    backend: Any = None,
    client: httpx.AsyncClient | None = None,
    user_lookup: Any = None,
    **kwargs: Any,
) -> VKHandler:
    defaults: dict[str, Any] = {
        "backend": backend if backend is not None else MemoryBackend(),
        "client": client or make_client(lambda request: httpx.Response(200, json={"response": 1})),
        "user_lookup": user_lookup or make_user_lookup(),
        "api_base_url": API_BASE,
    }
    defaults.update(kwargs)
    return VKHandler(**defaults)
