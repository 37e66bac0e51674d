"""
Time source for PaceBot.

Every component that waits or timestamps goes through a Clock so tests can
run the whole pipeline on virtual time.
"""

import asyncio
import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Wall-clock time plus an awaitable sleep."""

    @abstractmethod
    def now(self) -> float:
        """Current instant as epoch seconds."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the calling task for `seconds`."""
        pass


class SystemClock(Clock):
    """Clock backed by time.time() and asyncio.sleep()."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
        else:
            # Still yield so callers behave the same on a zero delay
            await asyncio.sleep(0)
