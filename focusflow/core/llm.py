"""
FocusFlow — LLM Provider Abstraction.

Two public functions route to the configured provider:
`complete()` for one-shot prompts (optionally with an image and JSON output)
and `chat()` for multi-turn conversations.
Provider is selected at startup via the LLM_PROVIDER env var.
Supports: gemini (default), anthropic, openai, cohere.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when a provider cannot serve a request (e.g. unsupported input)."""


@dataclass
class LLMImage:
    """Raw image bytes plus their declared MIME type."""

    data: bytes
    mime_type: str

    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass
class LLMMessage:
    """One conversation turn. Roles: "user" | "model"."""

    role: str
    text: str
    image: LLMImage | None = None


# Type alias for provider implementations:
# (api_key, model, system, messages, max_tokens, json_output) -> text
_ProviderFn = Callable[[str, str, str, list[LLMMessage], int, bool], Awaitable[str]]

# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_gemini(
    api_key: str, model: str, system: str, messages: list[LLMMessage],
    max_tokens: int, json_output: bool,
) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=system,
    )
    config = genai.types.GenerationConfig(
        max_output_tokens=max_tokens,
        response_mime_type="application/json" if json_output else None,
    )

    def _parts(msg: LLMMessage) -> list:
        parts: list = []
        if msg.image is not None:
            parts.append({"mime_type": msg.image.mime_type, "data": msg.image.data})
        parts.append(msg.text)
        return parts

    *history, current = messages
    if not history:
        response = await gm.generate_content_async(_parts(current), generation_config=config)
        return response.text

    session = gm.start_chat(
        history=[{"role": m.role, "parts": _parts(m)} for m in history],
    )
    response = await session.send_message_async(_parts(current), generation_config=config)
    return response.text


def _anthropic_messages(messages: list[LLMMessage]) -> list[dict]:
    out: list[dict] = []
    for msg in messages:
        role = "assistant" if msg.role == "model" else "user"
        if not out and role == "assistant":
            continue  # conversation must open with a user turn
        content: list[dict] = []
        if msg.image is not None:
            content.append({
                "type": "image",
                "source": {"type": "base64", "media_type": msg.image.mime_type, "data": msg.image.b64()},
            })
        content.append({"type": "text", "text": msg.text})
        out.append({"role": role, "content": content})
    return out


async def _complete_anthropic(
    api_key: str, model: str, system: str, messages: list[LLMMessage],
    max_tokens: int, json_output: bool,
) -> str:
    import anthropic

    if json_output:
        system += "\nRespond with JSON only."

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=_anthropic_messages(messages),
    )
    return response.content[0].text


def _openai_messages(system: str, messages: list[LLMMessage]) -> list[dict]:
    out: list[dict] = [{"role": "system", "content": system}]
    for msg in messages:
        role = "assistant" if msg.role == "model" else "user"
        if msg.image is None:
            out.append({"role": role, "content": msg.text})
            continue
        out.append({
            "role": role,
            "content": [
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{msg.image.mime_type};base64,{msg.image.b64()}"},
                },
                {"type": "text", "text": msg.text},
            ],
        })
    return out


async def _complete_openai(
    api_key: str, model: str, system: str, messages: list[LLMMessage],
    max_tokens: int, json_output: bool,
) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key)
    kwargs: dict = {}
    if json_output:
        kwargs["response_format"] = {"type": "json_object"}
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        messages=_openai_messages(system, messages),
        **kwargs,
    )
    return response.choices[0].message.content


async def _complete_cohere(
    api_key: str, model: str, system: str, messages: list[LLMMessage],
    max_tokens: int, json_output: bool,
) -> str:
    if any(m.image is not None for m in messages):
        raise LLMError("The cohere provider does not accept images")

    import cohere

    kwargs: dict = {}
    if json_output:
        kwargs["response_format"] = {"type": "json_object"}

    client = cohere.AsyncClientV2(api_key=api_key)
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            *[
                {"role": "assistant" if m.role == "model" else "user", "content": m.text}
                for m in messages
            ],
        ],
        **kwargs,
    )
    return response.message.content[0].text


# ---------------------------------------------------------------------------
# Provider selection (runs once at first call)
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "gemini":    (_complete_gemini,    "gemini-2.5-flash"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_complete_openai,    "gpt-4o-mini"),
    "cohere":    (_complete_cohere,    "command-a-03-2025"),
}


def _select_provider() -> tuple[_ProviderFn, str, str]:
    """Read env vars and return (provider_fn, model, api_key)."""
    from focusflow.config import settings

    provider_name = settings.LLM_PROVIDER.lower()
    if provider_name not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={provider_name!r}. "
            f"Supported: {', '.join(_PROVIDERS)}"
        )

    fn, default_model = _PROVIDERS[provider_name]
    model = settings.LLM_MODEL or default_model
    api_key = settings.LLM_API_KEY

    logger.info("LLM provider: %s, model: %s", provider_name, model)
    return fn, model, api_key


# Lazy singleton — populated on first call
_provider_fn: _ProviderFn | None = None
_model: str = ""
_api_key: str = ""


async def _send(system: str, messages: list[LLMMessage], max_tokens: int, json_output: bool) -> str:
    global _provider_fn, _model, _api_key

    if _provider_fn is None:
        _provider_fn, _model, _api_key = _select_provider()

    return await _provider_fn(_api_key, _model, system, messages, max_tokens, json_output)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete(
    system: str,
    user_message: str,
    max_tokens: int = 256,
    image: LLMImage | None = None,
    json_output: bool = False,
) -> str:
    """Send a prompt to the configured LLM provider and return the response text.

    Raises on API errors — callers should handle exceptions.
    """
    message = LLMMessage(role="user", text=user_message, image=image)
    return await _send(system, [message], max_tokens, json_output)


async def chat(
    system: str,
    history: list[LLMMessage],
    user_message: str,
    max_tokens: int = 512,
) -> str:
    """Continue a conversation: prior turns as context, then the new message.

    Raises on API errors — callers should handle exceptions.
    """
    messages = [*history, LLMMessage(role="user", text=user_message)]
    return await _send(system, messages, max_tokens, False)
