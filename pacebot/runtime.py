"""
PaceBot runtime.

Wires the stores, limiter, persona resolver, pacing pipeline and dispatcher
to a transport and a generation backend, and owns startup and shutdown:

- startup: load snapshots (empty on absence or corruption), sweep stale
  quotas, start the background flusher
- shutdown: stop the transport, drain in-flight replies, flush both stores
"""

import random
from typing import Any

from loguru import logger

from pacebot.auto_reply.dispatch import DispatchConfig, ReplyDispatcher
from pacebot.auto_reply.pacing import PacingPipeline
from pacebot.channels.base import Transport
from pacebot.config.schema import Config
from pacebot.memory.store import MemoryStore
from pacebot.persona.resolver import ContextResolver
from pacebot.providers.base import GenerationBackend
from pacebot.quota.limiter import RateLimiter
from pacebot.quota.store import QuotaStore
from pacebot.services.flusher import SnapshotFlusher
from pacebot.utils.clock import Clock, SystemClock


class PaceBotRuntime:
    """Owns every long-lived PaceBot component for one process."""

    def __init__(
        self,
        config: Config,
        transport: Transport,
        backend: GenerationBackend,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config
        self.transport = transport
        self.backend = backend
        self.clock = clock or SystemClock()
        rng = rng or random.Random()

        self.memory = MemoryStore(max_turns=config.memory.max_memory_per_chat)
        self.quotas = QuotaStore()
        self.limiter = RateLimiter(self.quotas, config.limits, rng)
        self.resolver = ContextResolver.from_file(
            config.context_path,
            default_persona=config.persona.default,
            network_suffixes=config.persona.network_suffixes,
        )
        self.pacing = PacingPipeline(
            config.pacing,
            clock=self.clock,
            rng=rng,
            business_token=config.auto_reply.business_token,
        )
        self.dispatcher = ReplyDispatcher(
            transport=transport,
            backend=backend,
            limiter=self.limiter,
            memory=self.memory,
            resolver=self.resolver,
            pacing=self.pacing,
            config=DispatchConfig.from_config(config),
            clock=self.clock,
        )
        self.flusher = SnapshotFlusher(
            targets=[
                (self.memory, config.memory_path),
                (self.quotas, config.quota_path),
            ],
            interval=config.persistence.flush_interval,
            sweep=self.limiter.sweep,
            sweep_interval=config.persistence.sweep_interval,
            clock=self.clock,
        )
        self._started = False

    def load(self) -> None:
        """Load snapshots and drop quota records that went stale while down."""
        self.memory.load(self.config.memory_path)
        self.quotas.load(self.config.quota_path)
        self.limiter.sweep(self.clock.now())

    async def start(self) -> None:
        """Load state, hook up the transport and start the flusher."""
        if self._started:
            return
        self.load()
        self.transport.set_handler(self.dispatcher.dispatch)
        await self.flusher.start()
        self._started = True
        logger.info("PaceBot is ready and listening for messages 🤖💬")

    async def run(self) -> None:
        """Start, run the transport until it returns, then shut down."""
        await self.start()
        try:
            await self.transport.start()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Drain in-flight work and flush both stores before exit."""
        if not self._started:
            return
        self._started = False
        logger.info("Shutting down...")
        try:
            await self.transport.stop()
        except Exception as e:
            logger.warning(f"Transport stop failed: {e}")
        await self.dispatcher.drain()
        await self.flusher.stop()

    def get_status(self) -> dict[str, Any]:
        """Get runtime status information."""
        return {
            "started": self._started,
            "transport": self.transport.name,
            "memory": self.memory.get_stats(),
            "quota_conversations": len(self.quotas),
            "persona_overrides": self.resolver.override_count,
            "dispatcher": self.dispatcher.get_stats(),
            "flusher": self.flusher.get_stats(),
        }
