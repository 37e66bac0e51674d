"""
Console transport for trying PaceBot locally.

Each line typed on stdin becomes an inbound message from one fixed
conversation; outbound actions are printed with rich.
"""

import asyncio
import uuid

from loguru import logger
from rich.console import Console

from pacebot.channels.base import InboundMessage, Transport


class ConsoleTransport(Transport):
    """Transport that reads stdin and prints outbound actions."""

    name = "console"

    def __init__(self, conversation_id: str = "console", console: Console | None = None):
        super().__init__()
        self.conversation_id = conversation_id
        self.console = console or Console()
        self._reader: asyncio.Task | None = None
        self._handlers: set[asyncio.Task] = set()

    async def start(self) -> None:
        """Start reading stdin; returns when stdin closes or stop() is called."""
        self._running = True
        logger.info(f"Console transport started for {self.conversation_id}")
        while self._running:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break

            if not line.strip():
                continue

            message = InboundMessage(
                conversation_id=self.conversation_id,
                content=line,
                message_id=uuid.uuid4().hex[:12],
            )
            # Don't block the reader on a paced reply; replies can overlap input
            task = asyncio.create_task(self._handle_message(message))
            self._handlers.add(task)
            task.add_done_callback(self._handlers.discard)

        self._running = False

    async def stop(self) -> None:
        self._running = False
        if self._handlers:
            await asyncio.gather(*self._handlers, return_exceptions=True)

    async def send_seen(self, conversation_id: str) -> None:
        self.console.print(f"[dim]✓✓ seen ({conversation_id})[/dim]")

    async def set_typing(self, conversation_id: str) -> None:
        self.console.print("[dim]typing...[/dim]")

    async def clear_typing(self, conversation_id: str) -> None:
        pass

    async def send_reply(self, conversation_id: str, text: str, reply_to: str = "") -> None:
        self.console.print(f"[cyan]bot:[/cyan] {text}")

    async def send_reaction(self, message_ref: str, glyph: str) -> None:
        self.console.print(f"[yellow]reacted {glyph} to {message_ref}[/yellow]")

    async def send_to_operator(self, operator_id: str, text: str) -> None:
        self.console.print(f"[magenta]→ {operator_id}:[/magenta] {text}")
