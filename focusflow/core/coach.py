"""
FocusFlow — AI Coach Chat.

A linear, append-only conversation with a fixed coaching persona.
Prior turns are sent as best-effort context with each new message.
Failures never raise to the caller: the user gets a fallback line instead.
"""

from __future__ import annotations

import logging
import time
import uuid

from focusflow.core.llm import LLMMessage, chat
from focusflow.data.models import ChatMessage

logger = logging.getLogger(__name__)

COACH_PERSONA = (
    "You are 'FocusFlow Coach', a supportive, energetic, and disciplined habit coach. "
    "Keep answers concise (under 100 words) unless asked for a detailed plan. "
    "Use emojis occasionally. Focus on consistency and incremental progress."
)

GREETING = "Hi! I'm your FocusFlow Coach. How are you feeling about your progress today?"
EMPTY_REPLY_FALLBACK = "Keep going! You're doing great."
ERROR_FALLBACK = (
    "I'm having trouble connecting to my coaching database right now. But don't give up!"
)

# Prior messages sent as context with each new message
CONTEXT_MESSAGES = 20


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_message(role: str, text: str) -> ChatMessage:
    return ChatMessage(id=str(uuid.uuid4()), role=role, text=text, timestamp=_now_ms())


class CoachChat:
    """Transcript holder and request wrapper for the coach."""

    def __init__(self, greeting: str = GREETING) -> None:
        self._messages: list[ChatMessage] = [_new_message("model", greeting)]

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def _history(self) -> list[LLMMessage]:
        recent = self._messages[-CONTEXT_MESSAGES:]
        history = [LLMMessage(role=m.role, text=m.text) for m in recent]
        # Providers expect the conversation to open with the user
        while history and history[0].role != "user":
            history.pop(0)
        return history

    async def send(self, text: str) -> str | None:
        """Append the user's message, ask the coach, append and return the reply.

        Returns None for blank input (nothing is appended).
        """
        text = (text or "").strip()
        if not text:
            return None

        history = self._history()
        self._messages.append(_new_message("user", text))

        try:
            reply = await chat(
                system=COACH_PERSONA,
                history=history,
                user_message=text,
                max_tokens=512,
            )
            reply = (reply or "").strip() or EMPTY_REPLY_FALLBACK
        except Exception as exc:
            logger.error("Error getting coaching response: %s", exc)
            reply = ERROR_FALLBACK

        self._messages.append(_new_message("model", reply))
        return reply
