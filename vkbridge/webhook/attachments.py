"""Best-effort extraction of a media URL from VK message attachments."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any


def _largest_url(variants: Any) -> str:
    """Return the URL of the variant with the greatest area."""
    if not isinstance(variants, list):
        return ""
    best_url = ""
    best_area = -1
    for variant in variants:
        if not isinstance(variant, dict):
            continue
        url = variant.get("url")
        if not isinstance(url, str) or not url:
            continue
        width = variant.get("width")
        height = variant.get("height")
        area = width * height if isinstance(width, int) and isinstance(height, int) else 0
        # VK lists sizes smallest first, so later entries win ties
        if area >= best_area:
            best_url, best_area = url, area
    return best_url


def _string_field(body: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def _photo_url(body: dict[str, Any]) -> str:
    return _largest_url(body.get("sizes")) or _string_field(body, "url")


def _sticker_url(body: dict[str, Any]) -> str:
    return _largest_url(body.get("images")) or _largest_url(body.get("images_with_background"))


def _audio_message_url(body: dict[str, Any]) -> str:
    return _string_field(body, "link_mp3", "link_ogg")


def _url_field(body: dict[str, Any]) -> str:
    return _string_field(body, "url")


_EXTRACTORS: dict[str, Callable[[dict[str, Any]], str]] = {
    "photo": _photo_url,
    "graffiti": _url_field,
    "sticker": _sticker_url,
    "audio_message": _audio_message_url,
    "doc": _url_field,
}


def extract_attachment_url(attachment: Any) -> str:
    """Return the media URL of a single attachment, or "" if unrecognized."""
    if not isinstance(attachment, dict):
        return ""
    kind = attachment.get("type")
    extractor = _EXTRACTORS.get(kind) if isinstance(kind, str) else None
    if extractor is None:
        return ""
    body = attachment.get(kind)
    if not isinstance(body, dict):
        return ""
    return extractor(body)


def take_first_attachment_url(attachments: Any) -> str:
    """Return the first usable URL among ``attachments`` in array order.

    Unknown or malformed entries are skipped; "" means no media was found.
    """
    if not isinstance(attachments, list):
        return ""
    for attachment in attachments:
        url = extract_attachment_url(attachment)
        if url:
            return url
    return ""
