"""In-flight AI request tracking.

Each request slot (e.g. "plan:<chat_id>") holds at most one running task.
Submitting a new request for a slot cancels the previous one, so a late
answer to an old question can never overwrite newer state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class RequestRegistry:
    """Cancelable AI tasks keyed by request slot."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task] = {}

    def submit(self, slot: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Start `coro` for `slot`, cancelling whatever was running there."""
        previous = self._tasks.get(slot)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.info("Superseded in-flight request for %s", slot)

        task = asyncio.ensure_future(coro)
        self._tasks[slot] = task
        task.add_done_callback(lambda t: self._forget(slot, t))
        return task

    def _forget(self, slot: str, task: asyncio.Task) -> None:
        # Keep the entry if a newer task already replaced this one
        if self._tasks.get(slot) is task:
            del self._tasks[slot]

    def is_current(self, slot: str, task: asyncio.Task) -> bool:
        """True if `task` is still the latest request for `slot`."""
        return not task.cancelled() and self._tasks.get(slot, task) is task

    async def run(self, slot: str, coro: Coroutine[Any, Any, Any]) -> tuple[bool, Any]:
        """Submit and await. Returns (applied, result).

        `applied` is False when the request was superseded before it
        finished; the result is then None and must be dropped.
        """
        task = self.submit(slot, coro)
        try:
            result = await task
        except asyncio.CancelledError:
            if task.cancelled() and not self._caller_cancelled():
                logger.info("Dropped superseded result for %s", slot)
                return False, None
            raise
        # A newer request may have arrived after this one finished
        if not self.is_current(slot, task):
            logger.info("Dropped stale result for %s", slot)
            return False, None
        return True, result

    @staticmethod
    def _caller_cancelled() -> bool:
        current = asyncio.current_task()
        return current is not None and current.cancelling() > 0

    def cancel_all(self) -> None:
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
        self._tasks.clear()
