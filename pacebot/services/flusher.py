"""
Background persistence for PaceBot.

Periodically writes dirty stores to their snapshot files and sweeps idle
quota records. Runs beside request handling and never blocks it: snapshot
writes happen in a worker thread, and a failed write only logs.
"""

import asyncio
from pathlib import Path
from typing import Callable

from loguru import logger

from pacebot.utils.clock import Clock, SystemClock
from pacebot.utils.snapshot import SnapshotStore


class SnapshotFlusher:
    """
    Interval-driven flush and sweep loop.

    Usage:
        flusher = SnapshotFlusher([(memory, memory_path), (quotas, quota_path)])
        await flusher.start()
        ...
        await flusher.stop()      # final synchronous flush included
    """

    def __init__(
        self,
        targets: list[tuple[SnapshotStore, Path]],
        interval: float = 30.0,
        sweep: Callable[[float], int] | None = None,
        sweep_interval: float = 600.0,
        clock: Clock | None = None,
    ):
        self.targets = targets
        self.interval = interval
        self.sweep = sweep
        self.sweep_interval = sweep_interval
        self.clock = clock or SystemClock()

        self._task: asyncio.Task | None = None
        self._in_flight: asyncio.Future | None = None  # Worker-thread flush
        self._running = False
        self._last_sweep = self.clock.now()

        # Stats
        self._flush_count = 0
        self._failure_count = 0

    async def start(self) -> None:
        """Start the background loop."""
        if self._running:
            return
        self._running = True
        self._last_sweep = self.clock.now()
        self._task = asyncio.create_task(self._run())
        logger.info(f"Snapshot flusher started (every {self.interval:.0f}s)")

    async def _run(self) -> None:
        while self._running:
            await self.clock.sleep(self.interval)
            if not self._running:
                break
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Snapshot flusher error: {e}")

    async def tick(self) -> None:
        """One loop iteration: sweep if due, then flush."""
        now = self.clock.now()
        if self.sweep is not None and now - self._last_sweep >= self.sweep_interval:
            self._last_sweep = now
            self.sweep(now)
        await self.flush()

    async def flush(self) -> int:
        """Flush every dirty store off the event loop. Returns files written."""
        written = 0
        for store, path in self.targets:
            if not store.is_dirty:
                continue
            # Shielded: the thread keeps writing even if the loop is cancelled
            self._in_flight = asyncio.ensure_future(asyncio.to_thread(store.flush, path))
            try:
                ok = await asyncio.shield(self._in_flight)
            except Exception as e:
                logger.error(f"Flush of {store.name} failed: {e}")
                ok = False
            if ok:
                written += 1
                self._flush_count += 1
            else:
                self._failure_count += 1
        return written

    def flush_now(self) -> int:
        """Flush every dirty store synchronously (used on shutdown)."""
        written = 0
        for store, path in self.targets:
            if store.flush(path):
                written += 1
                self._flush_count += 1
            elif store.is_dirty:
                self._failure_count += 1
        return written

    async def stop(self) -> None:
        """Stop the loop and write a final snapshot of every store."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._in_flight is not None and not self._in_flight.done():
            # Let the worker's write land before the final one
            try:
                await self._in_flight
            except Exception as e:
                logger.error(f"In-flight flush failed during stop: {e}")
        self._in_flight = None
        written = self.flush_now()
        logger.info(f"Snapshot flusher stopped ({written} snapshots written on drain)")

    def get_stats(self) -> dict:
        return {
            "running": self._running,
            "flush_count": self._flush_count,
            "failure_count": self._failure_count,
            "dirty": [store.name for store, _ in self.targets if store.is_dirty],
        }
