"""Bidirectional adapter between VK and a multi-channel message host."""

__version__ = "0.1.0"
