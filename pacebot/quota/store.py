"""
Quota storage for PaceBot.

Holds the sliding-window counters the rate limiter reads:
- Per-conversation reply timestamps (trailing 24 hours)
- Per-conversation cooldown (last reply instant + randomized duration)
- Process-wide reply timestamps (trailing hour)

Only the per-conversation records are snapshotted; the global window is
short enough that losing it on restart is harmless.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from pacebot.utils.snapshot import SnapshotStore

MINUTE = 60.0
HOUR = 60 * MINUTE
DAY = 24 * HOUR


def _to_millis(instant: float) -> int:
    return int(round(instant * 1000))


def _from_millis(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected epoch millis, got {value!r}")
    return value / 1000.0


@dataclass
class UserQuota:
    """Quota record for a single conversation."""
    recent_message_timestamps: deque[float] = field(default_factory=deque)
    last_reply_instant: float = 0.0
    cooldown_duration: float = 0.0

    def prune(self, now: float) -> None:
        """Drop timestamps outside the trailing 24 hours."""
        cutoff = now - DAY
        timestamps = self.recent_message_timestamps
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()

    def count_since(self, cutoff: float) -> int:
        """Count timestamps strictly newer than `cutoff`."""
        return sum(1 for ts in self.recent_message_timestamps if ts > cutoff)

    @property
    def last_activity(self) -> float:
        """Most recent instant this record was touched."""
        latest = self.recent_message_timestamps[-1] if self.recent_message_timestamps else 0.0
        return max(latest, self.last_reply_instant)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the snapshot representation (epoch millis)."""
        return {
            "recentMessageTimestamps": [_to_millis(ts) for ts in self.recent_message_timestamps],
            "lastReplyInstant": _to_millis(self.last_reply_instant),
            "cooldownDuration": _to_millis(self.cooldown_duration),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserQuota":
        """Create from the snapshot representation."""
        timestamps = data["recentMessageTimestamps"]
        if not isinstance(timestamps, list):
            raise TypeError("recentMessageTimestamps must be a list")
        return cls(
            recent_message_timestamps=deque(sorted(_from_millis(ts) for ts in timestamps)),
            last_reply_instant=_from_millis(data["lastReplyInstant"]),
            cooldown_duration=_from_millis(data["cooldownDuration"]),
        )


class QuotaStore(SnapshotStore):
    """
    Per-conversation and global reply counters.

    All mutation goes through this class; callers never touch the records
    directly, so a single lock serializes updates.
    """

    name = "quota"

    def __init__(self):
        super().__init__()
        self._users: dict[str, UserQuota] = {}
        self._global: deque[float] = deque()

    def get(self, conversation_id: str, now: float | None = None) -> UserQuota | None:
        """
        Get the record for a conversation, pruned to the 24h horizon.

        Returns None for conversations never replied to. Pruning is
        idempotent, so this is safe on the read path.
        """
        with self._lock:
            record = self._users.get(conversation_id)
            if record is not None and now is not None:
                record.prune(now)
            return record

    def global_counts(self, now: float) -> tuple[int, int]:
        """
        Count accepted replies across all conversations.

        Returns:
            (replies in the trailing minute, replies in the trailing hour)
        """
        with self._lock:
            cutoff = now - HOUR
            while self._global and self._global[0] <= cutoff:
                self._global.popleft()
            per_minute = sum(1 for ts in self._global if ts > now - MINUTE)
            return per_minute, len(self._global)

    def reserve_global(self, now: float) -> None:
        """Count an admitted reply against the global window before it is sent."""
        with self._lock:
            self._global.append(now)

    def release_global(self, instant: float) -> bool:
        """Give back a slot taken by `reserve_global` for a reply that was never sent."""
        with self._lock:
            try:
                self._global.remove(instant)
            except ValueError:
                return False
            return True

    def locked(self):
        """Hold the store lock across a read-then-write sequence."""
        return self._lock

    def record_reply(
        self,
        conversation_id: str,
        now: float,
        cooldown: float,
        reserved: bool = False,
    ) -> UserQuota:
        """
        Record an accepted reply and start a new cooldown.

        With `reserved`, the global slot was already taken at admission.
        """
        with self._lock:
            record = self._users.get(conversation_id)
            if record is None:
                record = UserQuota()
                self._users[conversation_id] = record
            record.prune(now)
            record.recent_message_timestamps.append(now)
            record.last_reply_instant = now
            record.cooldown_duration = cooldown
            if not reserved:
                self._global.append(now)
            self._mark_dirty()
            return record

    def sweep(self, now: float) -> list[str]:
        """
        Remove records with no activity in the last 24 hours.

        Returns:
            Conversation ids that were removed.
        """
        cutoff = now - DAY
        with self._lock:
            stale = [
                conversation_id
                for conversation_id, record in self._users.items()
                if record.last_activity <= cutoff
            ]
            for conversation_id in stale:
                del self._users[conversation_id]
            if stale:
                self._mark_dirty()
            return stale

    def remove(self, conversation_id: str) -> bool:
        """Forget a conversation's quota record."""
        with self._lock:
            if self._users.pop(conversation_id, None) is None:
                return False
            self._mark_dirty()
            return True

    def conversation_ids(self) -> list[str]:
        with self._lock:
            return list(self._users)

    def to_snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                conversation_id: record.to_dict()
                for conversation_id, record in self._users.items()
            }

    def load_snapshot(self, data: dict[str, Any]) -> None:
        users = {
            str(conversation_id): UserQuota.from_dict(record)
            for conversation_id, record in data.items()
        }
        with self._lock:
            self._users = users

    def __len__(self) -> int:
        return len(self._users)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._users
