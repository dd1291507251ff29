"""Channel registry backed by a JSON configuration file."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from vkbridge.models import ChannelConfig

logger = logging.getLogger(__name__)


class ChannelRegistry(Protocol):
    def get(self, uuid: str) -> ChannelConfig | None: ...


class StaticChannelRegistry:
    """Immutable uuid -> channel lookup."""

    def __init__(self, channels: Iterable[ChannelConfig]) -> None:
        self._channels = {c.uuid: c for c in channels}

    def get(self, uuid: str) -> ChannelConfig | None:
        return self._channels.get(uuid)

    def all(self) -> list[ChannelConfig]:
        return list(self._channels.values())

    def __len__(self) -> int:
        return len(self._channels)


def load_channels_from_file(
    path: str, channel_type: str = "VK",
) -> StaticChannelRegistry:
    """Load channels of ``channel_type`` from a JSON list of channel objects."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Channels file not found: {path}")
    raw = json.loads(config_path.read_text())
    if not isinstance(raw, list):
        raise ValueError(f"Channels file must contain a JSON list: {path}")

    channels = [ChannelConfig.model_validate(c) for c in raw]
    selected = [c for c in channels if c.channel_type == channel_type]
    skipped = len(channels) - len(selected)
    if skipped:
        logger.info("Skipped %d non-%s channels from %s", skipped, channel_type, path)
    return StaticChannelRegistry(selected)
