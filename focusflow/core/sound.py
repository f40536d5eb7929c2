"""Reminder sound settings — presets, custom uploads, playback sources.

A sound source is either a remote URL (presets) or an embedded data: URI
(user upload). Uploads above the size limit are rejected before any
state changes.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import replace

from focusflow.data.models import SoundSettings

logger = logging.getLogger(__name__)

MAX_CUSTOM_SOUND_BYTES = 2 * 1024 * 1024

PRESETS: dict[str, str] = {
    "Soft Chime": "https://assets.mixkit.co/sfx/preview/mixkit-happy-bells-notification-937.mp3",
    "Digital Beep": "https://assets.mixkit.co/sfx/preview/mixkit-software-interface-start-2574.mp3",
    "Gentle Alert": "https://assets.mixkit.co/sfx/preview/mixkit-positive-notification-951.mp3",
    "Success": "https://assets.mixkit.co/sfx/preview/mixkit-correct-answer-tone-2870.mp3",
}


class SoundTooLargeError(ValueError):
    """Raised when a custom sound exceeds the upload limit."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Sound file is {size} bytes, limit is {limit} bytes")
        self.size = size
        self.limit = limit


def select_preset(sound: SoundSettings, name: str) -> SoundSettings:
    """Switch to a preset sound. Raises KeyError for unknown names."""
    url = PRESETS[name]
    return replace(sound, type="preset", url=url, name=name)


def toggle_enabled(sound: SoundSettings) -> SoundSettings:
    return replace(sound, enabled=not sound.enabled)


def set_custom_sound(
    sound: SoundSettings,
    filename: str,
    data: bytes,
    mime_type: str = "audio/mpeg",
    max_bytes: int | None = None,
) -> SoundSettings:
    """Embed an uploaded audio file as a data: URI.

    Raises:
        SoundTooLargeError: If the file is over the limit.
    """
    limit = MAX_CUSTOM_SOUND_BYTES if max_bytes is None else max_bytes
    if len(data) > limit:
        raise SoundTooLargeError(len(data), limit)

    encoded = base64.b64encode(data).decode("ascii")
    return replace(
        sound,
        type="custom",
        url=f"data:{mime_type};base64,{encoded}",
        name=filename,
    )


def resolve_audio_source(url: str) -> str | bytes:
    """Turn a stored sound URL into something a player can send.

    Remote URLs pass through unchanged; data: URIs are decoded to bytes.

    Raises ValueError on anything else, or on a malformed data: URI.
    """
    if url.startswith(("http://", "https://")):
        return url

    if url.startswith("data:"):
        header, sep, payload = url.partition(",")
        if not sep or not header.endswith(";base64"):
            raise ValueError("Unsupported data URI (expected base64 payload)")
        try:
            return base64.b64decode(payload, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"Malformed base64 sound data: {exc}") from exc

    raise ValueError(f"Unsupported sound source: {url[:40]!r}")
