"""Tests for focusflow.core.llm — provider routing and message shaping."""

from unittest.mock import AsyncMock, patch

import pytest

from focusflow.core import llm
from focusflow.core.llm import (
    LLMError,
    LLMImage,
    LLMMessage,
    _anthropic_messages,
    _complete_cohere,
    _openai_messages,
    _select_provider,
    chat,
    complete,
)


class TestRouting:
    @pytest.mark.asyncio
    async def test_complete_builds_single_user_message(self):
        provider = AsyncMock(return_value="ok")
        image = LLMImage(data=b"img", mime_type="image/png")
        with patch.object(llm, "_provider_fn", provider), \
                patch.object(llm, "_model", "m"), patch.object(llm, "_api_key", "k"):
            result = await complete("sys", "hello", max_tokens=99, image=image, json_output=True)

        assert result == "ok"
        api_key, model, system, messages, max_tokens, json_output = provider.call_args[0]
        assert (api_key, model, system, max_tokens, json_output) == ("k", "m", "sys", 99, True)
        assert messages == [LLMMessage(role="user", text="hello", image=image)]

    @pytest.mark.asyncio
    async def test_chat_appends_new_message_to_history(self):
        provider = AsyncMock(return_value="reply")
        history = [LLMMessage("user", "hi"), LLMMessage("model", "hey")]
        with patch.object(llm, "_provider_fn", provider):
            await chat("persona", history, "next")

        messages = provider.call_args[0][3]
        assert [(m.role, m.text) for m in messages] == [
            ("user", "hi"), ("model", "hey"), ("user", "next"),
        ]
        assert provider.call_args[0][5] is False

    def test_default_provider_is_gemini(self):
        fn, model, api_key = _select_provider()
        assert fn is llm._complete_gemini
        assert model == "gemini-2.5-flash"
        assert api_key == "fake-llm-key-for-tests"

    def test_unknown_provider_raises(self):
        from focusflow.config import settings

        with patch.object(settings, "LLM_PROVIDER", "nope"):
            with pytest.raises(ValueError):
                _select_provider()


class TestMessageShaping:
    def test_anthropic_maps_roles_and_skips_leading_model(self):
        out = _anthropic_messages([
            LLMMessage("model", "greeting"),
            LLMMessage("user", "hi"),
            LLMMessage("model", "hello"),
        ])
        assert [m["role"] for m in out] == ["user", "assistant"]
        assert out[0]["content"] == [{"type": "text", "text": "hi"}]

    def test_anthropic_image_block(self):
        out = _anthropic_messages([LLMMessage("user", "read", LLMImage(b"abc", "image/png"))])
        image_block = out[0]["content"][0]
        assert image_block["type"] == "image"
        assert image_block["source"] == {"type": "base64", "media_type": "image/png", "data": "YWJj"}

    def test_openai_system_first_and_image_url(self):
        out = _openai_messages("sys", [LLMMessage("user", "read", LLMImage(b"abc", "image/jpeg"))])
        assert out[0] == {"role": "system", "content": "sys"}
        parts = out[1]["content"]
        assert parts[0]["image_url"]["url"] == "data:image/jpeg;base64,YWJj"
        assert parts[1] == {"type": "text", "text": "read"}

    def test_openai_text_only(self):
        out = _openai_messages("sys", [LLMMessage("model", "hey")])
        assert out[1] == {"role": "assistant", "content": "hey"}

    @pytest.mark.asyncio
    async def test_cohere_rejects_images(self):
        with pytest.raises(LLMError):
            await _complete_cohere(
                "k", "m", "sys", [LLMMessage("user", "x", LLMImage(b"a", "image/png"))], 10, False,
            )
