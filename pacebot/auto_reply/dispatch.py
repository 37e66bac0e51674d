"""
Reply dispatcher for PaceBot auto-reply.

Handles one inbound message end to end:
1. Filter messages that should never be answered
2. Take the conversation's in-flight gate (busy => drop)
3. Ask the rate limiter (cooldown => defer, other limits => drop)
4. Build the request from persona + recent memory and generate
5. Extract directives and deliver through the pacing pipeline
6. Record both turns and the accepted reply
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any

from loguru import logger

from pacebot.auto_reply.deferred import DeferredReplies
from pacebot.auto_reply.directives import STRUCTURED_REPLY_INSTRUCTIONS, parse_reply
from pacebot.auto_reply.pacing import PacingActions, PacingPipeline
from pacebot.auto_reply.tracker import InFlightTracker
from pacebot.channels.base import InboundMessage, Transport
from pacebot.config.schema import Config
from pacebot.memory.store import MemoryStore
from pacebot.persona.resolver import ContextResolver
from pacebot.providers.base import GenerationBackend
from pacebot.quota.limiter import Decision, RateLimiter, RejectReason
from pacebot.utils.clock import Clock, SystemClock

FORWARD_TEMPLATE = (
    'Hey {alias}, you likely have a business message from {sender} saying... "{inbound}" '
    'and i replied saying... "{reply}".'
)

# Seconds past the end of a cooldown before a deferred message is retried
DEFER_SLACK = 0.5


@dataclass
class DispatchConfig:
    """Configuration for the dispatcher."""
    memory_window: int = 20
    defer_on_cooldown: bool = True
    max_deferrals: int = 3
    max_deferred_chars: int = 2000
    max_forwarding_score: int = 5
    business_token: str = "business"
    operator_id: str = ""
    operator_alias: str = "boss"
    structured_output: bool = True

    @classmethod
    def from_config(cls, config: Config) -> "DispatchConfig":
        return cls(
            memory_window=config.memory.memory_window,
            defer_on_cooldown=config.auto_reply.defer_on_cooldown,
            max_deferred_chars=config.auto_reply.max_deferred_chars,
            max_forwarding_score=config.auto_reply.max_forwarding_score,
            business_token=config.auto_reply.business_token,
            operator_id=config.auto_reply.operator_id,
            operator_alias=config.auto_reply.operator_alias,
            structured_output=config.provider.structured_output,
        )


class DispatchOutcome(str, Enum):
    """How a single inbound message was handled."""
    IGNORED = "ignored"  # Filtered before gating
    BUSY = "busy"  # Conversation already being handled
    DEFERRED = "deferred"  # Parked until the cooldown ends
    REJECTED = "rejected"  # Over a quota limit
    REPLIED = "replied"
    FAILED = "failed"  # Generation or delivery failed


def _preview(text: str, limit: int = 80) -> str:
    text = text.replace("\n", " ")
    return text if len(text) <= limit else text[: limit - 1] + "…"


class ReplyDispatcher:
    """
    Coordinates gate, limiter, memory, persona, generation and pacing.

    `dispatch` never raises: every failure is logged and the conversation's
    gate is always released.
    """

    def __init__(
        self,
        transport: Transport,
        backend: GenerationBackend,
        limiter: RateLimiter,
        memory: MemoryStore,
        resolver: ContextResolver,
        pacing: PacingPipeline,
        tracker: InFlightTracker | None = None,
        deferred: DeferredReplies | None = None,
        config: DispatchConfig | None = None,
        clock: Clock | None = None,
    ):
        self.transport = transport
        self.backend = backend
        self.limiter = limiter
        self.memory = memory
        self.resolver = resolver
        self.pacing = pacing
        self.tracker = tracker or InFlightTracker()
        self.config = config or DispatchConfig()
        self.clock = clock or SystemClock()
        self.deferred = deferred or DeferredReplies(self.clock, self.config.max_deferred_chars)
        self.deferred.set_handler(self.dispatch)

        self._active: set[asyncio.Task] = set()

        # Stats
        self._received_count = 0
        self._replied_count = 0
        self._ignored_count = 0
        self._busy_count = 0
        self._deferred_count = 0
        self._rejected_count = 0
        self._error_count = 0

    async def dispatch(self, message: InboundMessage) -> DispatchOutcome:
        """
        Handle one inbound message.

        Args:
            message: The received message.

        Returns:
            The outcome; failures are reported here rather than raised.
        """
        task = asyncio.current_task()
        if task is not None:
            self._active.add(task)
        self._received_count += 1

        try:
            return await self._dispatch(message)
        except Exception as e:
            logger.exception(f"Dispatcher error for {message.conversation_id}: {e}")
            self._error_count += 1
            return DispatchOutcome.FAILED
        finally:
            if task is not None:
                self._active.discard(task)

    async def _dispatch(self, message: InboundMessage) -> DispatchOutcome:
        conversation_id = message.conversation_id

        skip_reason = self._skip_reason(message)
        if skip_reason:
            logger.debug(f"Ignoring message from {conversation_id}: {skip_reason}")
            self._ignored_count += 1
            return DispatchOutcome.IGNORED

        logger.info(f"💬 Message from {conversation_id}: {_preview(message.content)}")

        # Anything said while a reply is parked joins that reply
        parked = self.deferred.get(conversation_id)
        if parked is not None:
            self.deferred.defer(message, max(parked.due - self.clock.now(), 0.0))
            logger.info(f"Merged message from {conversation_id} into its deferred reply")
            self._deferred_count += 1
            return DispatchOutcome.DEFERRED

        with self.tracker.hold(conversation_id) as acquired:
            if not acquired:
                logger.info(f"Conversation {conversation_id} is busy, dropping message")
                self._busy_count += 1
                return DispatchOutcome.BUSY

            admitted_at = self.clock.now()
            decision = self.limiter.admit(conversation_id, admitted_at)
            if not decision.allowed:
                return self._on_rejected(message, decision)

            outcome = DispatchOutcome.FAILED
            try:
                outcome = await self._reply(message)
            finally:
                if outcome != DispatchOutcome.REPLIED:
                    self.limiter.release(admitted_at)
            return outcome

    def _skip_reason(self, message: InboundMessage) -> str | None:
        """Return why a message should not be answered, or None."""
        if message.from_me:
            return "own message"
        if not message.content or not message.content.strip():
            return "empty body"
        if message.media_type == "gif":
            return "gif"
        if message.forwarding_score > self.config.max_forwarding_score:
            return f"forwarded {message.forwarding_score} times"
        return None

    def _on_rejected(self, message: InboundMessage, decision: Decision) -> DispatchOutcome:
        """Defer or drop a message the limiter did not admit."""
        conversation_id = message.conversation_id
        deferrals = int(message.metadata.get("deferrals", 0))

        if (
            decision.reason == RejectReason.COOLDOWN
            and self.config.defer_on_cooldown
            and deferrals < self.config.max_deferrals
        ):
            message.metadata["deferrals"] = deferrals + 1
            delay = decision.retry_after + DEFER_SLACK
            self.deferred.defer(message, delay)
            logger.info(
                f"⏳ Cooldown active for {conversation_id}, "
                f"will reply in {delay:.1f}s"
            )
            self._deferred_count += 1
            return DispatchOutcome.DEFERRED

        logger.info(
            f"Not replying to {conversation_id}: {decision.reason.value} "
            f"(retry after {decision.retry_after:.0f}s)"
        )
        self._rejected_count += 1
        return DispatchOutcome.REJECTED

    def build_request(self, message: InboundMessage) -> list[dict[str, Any]]:
        """Persona, then the recent window, then the message being answered."""
        persona = self.resolver.resolve(message.conversation_id)
        if self.config.structured_output:
            persona = f"{persona}\n\n{STRUCTURED_REPLY_INSTRUCTIONS}"

        window = self.memory.recent_window(message.conversation_id, self.config.memory_window)
        return [
            {"role": "system", "content": persona},
            *(turn.to_dict() for turn in window),
            {"role": "user", "content": message.content},
        ]

    async def _reply(self, message: InboundMessage) -> DispatchOutcome:
        conversation_id = message.conversation_id

        try:
            raw = await self.backend.generate(self.build_request(message))
        except Exception as e:
            logger.error(f"❌ Generation failed for {conversation_id}: {e}")
            self._error_count += 1
            return DispatchOutcome.FAILED

        parsed = parse_reply(raw, self.config.business_token)
        if not parsed.text:
            logger.warning(f"Empty reply generated for {conversation_id}, not sending")
            self._error_count += 1
            return DispatchOutcome.FAILED

        actions = self._bind_actions(message, parsed.text, parsed.directives.is_business)
        sent = await self.pacing.deliver(parsed.text, parsed.directives, actions)
        if not sent:
            self._error_count += 1
            return DispatchOutcome.FAILED

        self.memory.append(conversation_id, "user", message.content)
        self.memory.append(conversation_id, "assistant", parsed.text)
        self.limiter.accept(conversation_id, self.clock.now(), reserved=True)

        logger.info(f"🤖 Bot reply to {conversation_id}: {_preview(parsed.text)}")
        self._replied_count += 1
        return DispatchOutcome.REPLIED

    def _bind_actions(self, message: InboundMessage, reply: str, is_business: bool) -> PacingActions:
        conversation_id = message.conversation_id
        transport = self.transport

        forward = None
        if is_business:
            if self.config.operator_id:
                forward = partial(
                    self._forward_to_operator, message.sender_id, message.content, reply
                )
            else:
                logger.warning(f"Business message from {conversation_id} but no operator configured")

        return PacingActions(
            send=partial(transport.send_reply, conversation_id, reply_to=message.message_id),
            react=partial(transport.send_reaction, message.message_id),
            seen=partial(transport.send_seen, conversation_id),
            typing_on=partial(transport.set_typing, conversation_id),
            typing_off=partial(transport.clear_typing, conversation_id),
            forward=forward,
        )

    async def _forward_to_operator(self, sender: str, inbound: str, reply: str) -> None:
        text = FORWARD_TEMPLATE.format(
            alias=self.config.operator_alias,
            sender=sender,
            inbound=inbound,
            reply=reply,
        )
        await self.transport.send_to_operator(self.config.operator_id, text)
        logger.info(f"✉️ Business message forwarded: {_preview(reply)}")

    async def drain(self) -> None:
        """
        Stop taking deferred work and wait for running dispatches.

        Parked messages are dropped; pipelines already running finish.
        """
        cancelled = self.deferred.cancel_all()
        if cancelled:
            logger.info(f"Dropped {cancelled} deferred replies on shutdown")

        current = asyncio.current_task()
        running = [t for t in self._active if t is not current]
        if running:
            logger.info(f"Waiting for {len(running)} replies in flight")
            await asyncio.gather(*running, return_exceptions=True)

        await self.pacing.wait_background()

    def get_stats(self) -> dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            "received_count": self._received_count,
            "replied_count": self._replied_count,
            "ignored_count": self._ignored_count,
            "busy_count": self._busy_count,
            "deferred_count": self._deferred_count,
            "rejected_count": self._rejected_count,
            "error_count": self._error_count,
            "in_flight": len(self.tracker),
            "deferred": self.deferred.get_stats(),
        }
