"""Notification port — abstract interface for reaching the user.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def send_message(self, user_id: int, text: str) -> None: ...

    async def send_audio(self, user_id: int, source: str | bytes, title: str = "") -> None: ...
