"""
Transport abstraction for PaceBot.

A transport receives messages from a messaging network and performs the
outbound actions the pacing pipeline sequences. PaceBot never speaks a wire
protocol itself; concrete transports live at the edge.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable


@dataclass
class InboundMessage:
    """A message received from a conversation."""
    conversation_id: str
    content: str
    message_id: str = ""  # Transport-specific reference used for reactions/quoting
    sender_id: str = ""  # Defaults to the conversation id (direct chats)
    from_me: bool = False
    media_type: str | None = None  # e.g. "gif", "image"; None for plain text
    forwarding_score: int = 0
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.sender_id:
            self.sender_id = self.conversation_id


# Handler invoked once per inbound message
InboundHandler = Callable[[InboundMessage], Awaitable[None]]


class Transport(ABC):
    """
    Outbound actions on a messaging network.

    Every method is fire-and-forget from PaceBot's point of view: callers log
    failures and move on.
    """

    name: str = "base"

    def __init__(self):
        self._handler: InboundHandler | None = None
        self._running = False

    def set_handler(self, handler: InboundHandler) -> None:
        """Set the coroutine that receives inbound messages."""
        self._handler = handler

    async def _handle_message(self, message: InboundMessage) -> None:
        """Pass an inbound message to the registered handler."""
        if self._handler is not None:
            await self._handler(message)

    @property
    def is_running(self) -> bool:
        return self._running

    @abstractmethod
    async def start(self) -> None:
        """Connect and start delivering inbound messages."""

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect."""

    @abstractmethod
    async def send_seen(self, conversation_id: str) -> None:
        """Mark the conversation as read."""

    @abstractmethod
    async def set_typing(self, conversation_id: str) -> None:
        """Show the typing indicator."""

    @abstractmethod
    async def clear_typing(self, conversation_id: str) -> None:
        """Hide the typing indicator."""

    @abstractmethod
    async def send_reply(self, conversation_id: str, text: str, reply_to: str = "") -> None:
        """Send a text reply, quoting `reply_to` if given."""

    @abstractmethod
    async def send_reaction(self, message_ref: str, glyph: str) -> None:
        """React to a message."""

    @abstractmethod
    async def send_to_operator(self, operator_id: str, text: str) -> None:
        """Send a notice to the operator's own conversation."""
