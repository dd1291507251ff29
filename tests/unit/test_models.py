"""Tests for shared data models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tests.conftest import ACCESS_TOKEN, CHANNEL_UUID, make_channel
from vkbridge.models import (
    URN,
    ChannelLog,
    MsgStatus,
    MsgStatusValue,
    OutboundMessage,
    redact_token,
)


class TestURN:
    def test_parse(self) -> None:
        urn = URN.parse("vk:123456")
        assert urn.scheme == "vk"
        assert urn.path == "123456"
        assert str(urn) == "vk:123456"

    def test_from_parts_accepts_int(self) -> None:
        assert str(URN.from_parts("vk", -42)) == "vk:-42"

    @pytest.mark.parametrize("value", ["vk", "vk:", ":123", ""])
    def test_parse_rejects_incomplete(self, value: str) -> None:
        with pytest.raises(ValueError, match="invalid URN"):
            URN.parse(value)

    def test_outbound_message_coerces_string_urn(self) -> None:
        msg = OutboundMessage.model_validate_json(
            f'{{"id": "1", "channel_uuid": "{CHANNEL_UUID}", "urn": "vk:55", "text": "hi"}}',
        )
        assert msg.urn == URN(scheme="vk", path="55")
        assert msg.model_dump(mode="json")["urn"] == "vk:55"

    def test_outbound_message_rejects_bad_urn(self) -> None:
        with pytest.raises(ValidationError):
            OutboundMessage(id="1", channel_uuid=CHANNEL_UUID, urn="nope")

    def test_outbound_message_requires_id(self) -> None:
        with pytest.raises(ValidationError):
            OutboundMessage(id="", channel_uuid=CHANNEL_UUID, urn="vk:1")


class TestChannelConfig:
    def test_config_properties(self) -> None:
        channel = make_channel()
        assert channel.shared_secret == "shared-secret"
        assert channel.verification_string == "a1b2c3d4"
        assert channel.access_token == ACCESS_TOKEN

    def test_missing_keys_read_as_empty(self) -> None:
        channel = make_channel().model_copy(update={"config": {}})
        assert channel.shared_secret == ""
        assert channel.access_token == ""

    def test_redacted_masks_every_value(self) -> None:
        data = make_channel().redacted()
        assert data["uuid"] == CHANNEL_UUID
        assert set(data["config"].values()) == {"***"}
        assert ACCESS_TOKEN not in str(data)


class TestMsgStatus:
    def test_starts_errored(self) -> None:
        status = MsgStatus(channel_uuid=CHANNEL_UUID, msg_id="10")
        assert status.status == MsgStatusValue.ERRORED
        assert status.external_id is None
        assert status.logs == []

    def test_records_outcome(self) -> None:
        status = MsgStatus(channel_uuid=CHANNEL_UUID, msg_id="10")
        status.add_log(ChannelLog(description="Message Sent", channel_uuid=CHANNEL_UUID))
        status.set_external_id("12345")
        status.set_status(MsgStatusValue.SENT)
        dumped = status.model_dump(mode="json")
        assert dumped["status"] == "S"
        assert dumped["external_id"] == "12345"
        assert dumped["logs"][0]["description"] == "Message Sent"


def test_redact_token_masks_value() -> None:
    url = f"https://api.vk.com/method/messages.send.json?v=5.103&access_token={ACCESS_TOKEN}&user_id=1"
    redacted = redact_token(url)
    assert ACCESS_TOKEN not in redacted
    assert "access_token=**********&user_id=1" in redacted


def test_redact_token_leaves_other_text() -> None:
    assert redact_token("no secrets here") == "no secrets here"
