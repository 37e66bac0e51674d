"""
In-flight tracking for PaceBot auto-reply.

At most one reply pipeline runs per conversation. A message that arrives
while its conversation is busy is dropped rather than queued; the sender
will write again and that message gets handled.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class InFlightTracker:
    """Exclusive per-conversation gate."""

    def __init__(self):
        self._busy: set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, conversation_id: str) -> bool:
        """Mark a conversation busy. Returns False if it already was."""
        with self._lock:
            if conversation_id in self._busy:
                return False
            self._busy.add(conversation_id)
            return True

    def release(self, conversation_id: str) -> None:
        """Mark a conversation free. Releasing a free conversation is a no-op."""
        with self._lock:
            self._busy.discard(conversation_id)

    def is_busy(self, conversation_id: str) -> bool:
        with self._lock:
            return conversation_id in self._busy

    @contextmanager
    def hold(self, conversation_id: str) -> Iterator[bool]:
        """
        Acquire the gate for the duration of a block.

        Yields whether the gate was acquired; it is released on exit only if
        this block acquired it.
        """
        acquired = self.try_acquire(conversation_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(conversation_id)

    def __len__(self) -> int:
        return len(self._busy)
