"""
Pytest configuration and shared fixtures for PaceBot tests.
"""

import asyncio
import random
import sys
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from pacebot.channels.base import Transport
from pacebot.config.schema import Config, PersistenceConfig
from pacebot.providers.base import GenerationBackend
from pacebot.utils.clock import Clock

START = 1_700_000_000.0


class FakeClock(Clock):
    """
    Virtual clock: sleep() advances time instantly and records the delay.

    Sleeps longer than `park_above` never return (until cancelled), so
    long-interval background loops stay idle during a test. A `frozen`
    clock records sleeps without advancing, so concurrent tasks all see
    the same instant.
    """

    def __init__(
        self,
        start: float = START,
        park_above: float | None = None,
        frozen: bool = False,
    ):
        self._now = start
        self.park_above = park_above
        self.frozen = frozen
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds

    async def sleep(self, seconds: float) -> None:
        if self.park_above is not None and seconds > self.park_above:
            await asyncio.Event().wait()
        self.sleeps.append(seconds)
        if not self.frozen:
            self._now += max(seconds, 0.0)
        await asyncio.sleep(0)


class FakeTransport(Transport):
    """Transport that records every outbound action."""

    name = "fake"

    def __init__(self, fail_on: tuple[str, ...] = ()):
        super().__init__()
        self.calls: list[tuple] = []
        self.fail_on = set(fail_on)

    async def _record(self, name: str, *args) -> None:
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")
        self.calls.append((name, *args))

    @property
    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    async def send_seen(self, conversation_id):
        await self._record("send_seen", conversation_id)

    async def set_typing(self, conversation_id):
        await self._record("set_typing", conversation_id)

    async def clear_typing(self, conversation_id):
        await self._record("clear_typing", conversation_id)

    async def send_reply(self, conversation_id, text, reply_to=""):
        await self._record("send_reply", conversation_id, text, reply_to)

    async def send_reaction(self, message_ref, glyph):
        await self._record("send_reaction", message_ref, glyph)

    async def send_to_operator(self, operator_id, text):
        await self._record("send_to_operator", operator_id, text)


class FakeBackend(GenerationBackend):
    """Backend returning canned replies (the last one repeats)."""

    def __init__(self, replies: list[str] | None = None):
        self.replies = list(replies or ["Hello there"])
        self.error: Exception | None = None
        self.requests: list[list[dict]] = []

    async def generate(self, messages):
        self.requests.append(messages)
        if self.error is not None:
            raise self.error
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0]


@pytest.fixture
def workspace(tmp_path):
    """Create a temporary workspace directory."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def clock():
    """Virtual clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def make_clock():
    """Factory for clocks with custom options."""
    return FakeClock


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(1234)


@pytest.fixture
def transport():
    """Recording transport."""
    return FakeTransport()


@pytest.fixture
def make_transport():
    """Factory for recording transports with injected failures."""
    return FakeTransport


@pytest.fixture
def backend():
    """Canned generation backend."""
    return FakeBackend()


@pytest.fixture
def config(workspace):
    """Default config with snapshots under the temp workspace."""
    return Config(persistence=PersistenceConfig(data_dir=str(workspace / "data")))
