"""Tests for focusflow.core.sound — presets, uploads, playback sources."""

import base64

import pytest

from focusflow.core.sound import (
    MAX_CUSTOM_SOUND_BYTES,
    PRESETS,
    SoundTooLargeError,
    resolve_audio_source,
    select_preset,
    set_custom_sound,
    toggle_enabled,
)
from focusflow.data.models import SoundSettings


class TestPresets:
    def test_select_preset(self):
        sound = select_preset(SoundSettings(), "Digital Beep")
        assert sound.type == "preset"
        assert sound.name == "Digital Beep"
        assert sound.url == PRESETS["Digital Beep"]

    def test_select_preset_keeps_enabled_flag(self):
        sound = select_preset(SoundSettings(enabled=False), "Success")
        assert sound.enabled is False

    def test_unknown_preset_raises(self):
        with pytest.raises(KeyError):
            select_preset(SoundSettings(), "Air Horn")

    def test_toggle_enabled(self):
        assert toggle_enabled(SoundSettings(enabled=True)).enabled is False
        assert toggle_enabled(SoundSettings(enabled=False)).enabled is True


class TestCustomSound:
    def test_embeds_data_uri(self):
        sound = set_custom_sound(SoundSettings(), "ding.mp3", b"\x01\x02", mime_type="audio/mpeg")
        assert sound.type == "custom"
        assert sound.name == "ding.mp3"
        assert sound.url == "data:audio/mpeg;base64," + base64.b64encode(b"\x01\x02").decode()

    def test_exactly_at_limit_is_accepted(self):
        sound = set_custom_sound(SoundSettings(), "a.mp3", b"x" * 10, max_bytes=10)
        assert sound.type == "custom"

    def test_over_limit_raises_and_leaves_input_unchanged(self):
        original = SoundSettings()
        with pytest.raises(SoundTooLargeError) as exc_info:
            set_custom_sound(original, "big.mp3", b"x" * 11, max_bytes=10)
        assert exc_info.value.size == 11
        assert original == SoundSettings()

    def test_default_limit_is_two_megabytes(self):
        assert MAX_CUSTOM_SOUND_BYTES == 2 * 1024 * 1024
        with pytest.raises(SoundTooLargeError):
            set_custom_sound(SoundSettings(), "big.mp3", b"x" * (MAX_CUSTOM_SOUND_BYTES + 1))


class TestResolveAudioSource:
    def test_remote_url_passes_through(self):
        url = PRESETS["Soft Chime"]
        assert resolve_audio_source(url) == url

    def test_data_uri_decoded(self):
        url = "data:audio/wav;base64," + base64.b64encode(b"RIFF").decode()
        assert resolve_audio_source(url) == b"RIFF"

    def test_malformed_base64_raises(self):
        with pytest.raises(ValueError):
            resolve_audio_source("data:audio/wav;base64,!!!not-base64")

    def test_non_base64_data_uri_raises(self):
        with pytest.raises(ValueError):
            resolve_audio_source("data:audio/wav,plain")

    def test_unknown_scheme_raises(self):
        with pytest.raises(ValueError):
            resolve_audio_source("ftp://example.com/sound.mp3")
