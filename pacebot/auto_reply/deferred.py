"""
Deferred replies for PaceBot auto-reply.

When a message arrives during its conversation's cooldown it is parked and
re-dispatched once the cooldown has run out. Further messages from the same
conversation while one is parked are merged into it, so the eventual reply
answers everything the person said in the meantime.
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable

from loguru import logger

from pacebot.channels.base import InboundMessage
from pacebot.utils.clock import Clock, SystemClock


@dataclass
class DeferredMessage:
    """A message waiting for its conversation's cooldown to expire."""
    message: InboundMessage
    due: float
    task: asyncio.Task | None = field(default=None, repr=False)


class DeferredReplies:
    """
    Per-conversation timers that re-dispatch parked messages.

    Features:
    - One parked message per conversation
    - Merges messages that arrive while parked, keeping at most
      `max_chars` of the newest text
    - Cancels all timers on shutdown
    """

    def __init__(self, clock: Clock | None = None, max_chars: int = 2000):
        self.clock = clock or SystemClock()
        self.max_chars = max_chars
        self._pending: dict[str, DeferredMessage] = {}
        self._handler: Callable[[InboundMessage], Awaitable[Any]] | None = None

        # Stats
        self._total_deferred = 0
        self._total_merged = 0
        self._total_fired = 0

    def set_handler(self, handler: Callable[[InboundMessage], Awaitable[Any]]) -> None:
        """Set the coroutine that receives messages when their timer fires."""
        self._handler = handler

    def defer(self, message: InboundMessage, delay: float) -> DeferredMessage:
        """
        Park a message for `delay` seconds.

        If the conversation already has a parked message, the contents are
        combined and the timer restarts with `delay`.
        """
        conversation_id = message.conversation_id
        existing = self._pending.get(conversation_id)

        if existing is not None:
            if existing.task is not None and not existing.task.done():
                existing.task.cancel()
            # Newest message id so a reaction lands on the latest message
            message = replace(
                message,
                content=self._merge(existing.message.content, message.content),
                timestamp=existing.message.timestamp,
                metadata={**existing.message.metadata, **message.metadata},
            )
            self._total_merged += 1
        else:
            self._total_deferred += 1

        entry = DeferredMessage(message=message, due=self.clock.now() + delay)
        entry.task = asyncio.create_task(self._fire_after(conversation_id, delay))
        self._pending[conversation_id] = entry
        return entry

    def _merge(self, older: str, newer: str) -> str:
        """Join two parked texts, dropping the oldest lines past `max_chars`."""
        lines = f"{older}\n{newer}".split("\n")
        while len(lines) > 1 and len("\n".join(lines)) > self.max_chars:
            lines.pop(0)
        merged = "\n".join(lines)
        if len(merged) > self.max_chars:
            merged = merged[-self.max_chars:]
        return merged

    async def _fire_after(self, conversation_id: str, delay: float) -> None:
        await self.clock.sleep(delay)

        entry = self._pending.pop(conversation_id, None)
        if entry is None or self._handler is None:
            return

        self._total_fired += 1
        try:
            await self._handler(entry.message)
        except Exception as e:
            logger.error(f"Deferred dispatch failed for {conversation_id}: {e}")

    def is_pending(self, conversation_id: str) -> bool:
        return conversation_id in self._pending

    def get(self, conversation_id: str) -> DeferredMessage | None:
        return self._pending.get(conversation_id)

    def cancel_all(self) -> int:
        """Cancel every parked message. Returns how many were dropped."""
        count = 0
        for entry in self._pending.values():
            if entry.task is not None and not entry.task.done():
                entry.task.cancel()
                count += 1
        self._pending.clear()
        return count

    def __len__(self) -> int:
        return len(self._pending)

    def get_stats(self) -> dict[str, Any]:
        """Get deferral statistics."""
        return {
            "pending": len(self._pending),
            "total_deferred": self._total_deferred,
            "total_merged": self._total_merged,
            "total_fired": self._total_fired,
        }
