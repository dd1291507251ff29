"""Message store the VK handler hands inbound messages to."""

from __future__ import annotations

import logging
from typing import Protocol

from vkbridge.models import CanonicalInboundMessage

logger = logging.getLogger(__name__)


class Backend(Protocol):
    async def write_msg(self, msg: CanonicalInboundMessage) -> None: ...


class MemoryBackend:
    """Keeps written messages in process memory."""

    def __init__(self) -> None:
        self.messages: list[CanonicalInboundMessage] = []

    async def write_msg(self, msg: CanonicalInboundMessage) -> None:
        self.messages.append(msg)
        logger.info(
            "Stored message %s from %s on channel %s",
            msg.external_id, msg.urn, msg.channel_uuid,
        )
