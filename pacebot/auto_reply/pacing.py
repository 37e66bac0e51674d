"""
Human-like pacing for PaceBot replies.

Sequence for one reply:
1. (optional) wait a reaction delay, react to the inbound message
2. wait a "seen" delay, mark the conversation read
3. short fixed pause
4. typing indicator on
5. wait proportional to reply length (capped)
6. typing indicator off
7. send the reply

Steps run strictly in order. A business forward, if requested, runs as a
separate task so it never holds up the reply.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger

from pacebot.auto_reply.directives import ReplyDirectives
from pacebot.config.schema import PacingConfig
from pacebot.utils.clock import Clock, SystemClock


@dataclass
class PacingActions:
    """Outbound actions for one reply, already bound to its conversation."""
    send: Callable[[str], Awaitable[None]]
    react: Callable[[str], Awaitable[None]]
    seen: Callable[[], Awaitable[None]]
    typing_on: Callable[[], Awaitable[None]]
    typing_off: Callable[[], Awaitable[None]]
    forward: Callable[[], Awaitable[None]] | None = None


class PacingPipeline:
    """Delivers replies with randomized human-like delays."""

    def __init__(
        self,
        config: PacingConfig | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        business_token: str = "business",
    ):
        self.config = config or PacingConfig()
        self.clock = clock or SystemClock()
        self.business_token = business_token
        self._rng = rng or random.Random()
        self._background: set[asyncio.Task] = set()

    def _draw(self, bounds: tuple[float, float]) -> float:
        low, high = bounds
        return self._rng.uniform(low, high)

    def typing_duration(self, reply: str) -> float:
        """Typing time for a reply: length x per-character rate, capped."""
        per_char = self._draw(self.config.typing_rate)
        return min(len(reply) * per_char, self.config.typing_cap)

    async def _run_action(self, name: str, action: Callable[..., Awaitable[Any]], *args: Any) -> bool:
        """Run one transport action; failures are logged, never raised."""
        try:
            await action(*args)
            return True
        except Exception as e:
            logger.warning(f"Pacing action '{name}' failed: {e}")
            return False

    async def deliver(
        self,
        reply: str,
        directives: ReplyDirectives,
        actions: PacingActions,
    ) -> bool:
        """
        Deliver a reply with pacing.

        Args:
            reply: Cleaned reply text.
            directives: Reaction / business flags parsed from the model output.
            actions: Bound transport actions.

        Returns:
            True if the reply itself was sent.
        """
        if directives.is_business and actions.forward is not None:
            self._spawn(self._run_action("forward", actions.forward))

        glyph = directives.reaction_glyph
        if glyph and glyph.lower() != self.business_token.lower():
            await self.clock.sleep(self._draw(self.config.reaction_delay))
            await self._run_action("react", actions.react, glyph)

        if not reply:
            # Reaction-only answer
            return False

        await self.clock.sleep(self._draw(self.config.seen_delay))
        await self._run_action("seen", actions.seen)

        await self.clock.sleep(self.config.pre_typing_pause)
        await self._run_action("typing_on", actions.typing_on)

        await self.clock.sleep(self.typing_duration(reply))
        await self._run_action("typing_off", actions.typing_off)

        return await self._run_action("send", actions.send, reply)

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_background(self) -> None:
        """Wait for detached work (business forwards) to finish."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    @property
    def pending_background(self) -> int:
        return len(self._background)
