"""
Dirty-tracking base for stores persisted as JSON snapshots.

Mutations mark the store dirty; a flusher writes the snapshot on an interval
and clears the flag only if the write succeeded and nothing changed while it
was in flight.
"""

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from loguru import logger

from pacebot.utils.helpers import read_json_snapshot, write_json_snapshot


class SnapshotStore(ABC):
    """Base class for in-memory stores with JSON snapshot persistence."""

    name = "store"

    def __init__(self):
        self._lock = threading.RLock()
        self._dirty = False
        self._version = 0  # Bumped on every mutation
        # Serializes flushes so an older snapshot never lands after a newer one
        self._write_lock = threading.Lock()

    @property
    def is_dirty(self) -> bool:
        """True if there are changes not yet written to disk."""
        return self._dirty

    def _mark_dirty(self) -> None:
        """Record a mutation. Callers must hold the lock."""
        self._dirty = True
        self._version += 1

    @abstractmethod
    def to_snapshot(self) -> dict[str, Any]:
        """Serialize the store to a JSON-compatible mapping."""
        pass

    @abstractmethod
    def load_snapshot(self, data: dict[str, Any]) -> None:
        """
        Replace the store contents with a deserialized snapshot.

        Raises KeyError, TypeError or ValueError on malformed data.
        """
        pass

    def load(self, path: Path) -> None:
        """
        Load state from `path`, falling back to an empty store.

        A missing file is the first-run state. Malformed data is treated the
        same way so a bad snapshot never prevents startup.
        """
        data = read_json_snapshot(path)
        try:
            self.load_snapshot(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Malformed {self.name} snapshot {path}, starting empty: {e}")
            self.load_snapshot({})

        with self._lock:
            self._dirty = False
        logger.info(f"Loaded {self.name} snapshot from {path} ({len(self)} conversations)")

    def flush(self, path: Path, force: bool = False) -> bool:
        """
        Write the snapshot to `path` if the store is dirty.

        Concurrent flushes (a background worker thread and the shutdown
        flush) run one at a time, each taking its snapshot only once it
        holds the write lock.

        Returns:
            True if a snapshot was written.
        """
        with self._write_lock:
            with self._lock:
                if not self._dirty and not force:
                    return False
                snapshot = self.to_snapshot()
                version = self._version

            try:
                write_json_snapshot(path, snapshot)
            except OSError as e:
                # In-memory state stays authoritative until the next flush
                logger.error(f"Failed to flush {self.name} snapshot to {path}: {e}")
                return False

            with self._lock:
                if self._version == version:
                    self._dirty = False
        logger.debug(f"Flushed {self.name} snapshot to {path}")
        return True

    @abstractmethod
    def __len__(self) -> int:
        pass
