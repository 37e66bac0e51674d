"""
Admission control for outgoing replies.

Checks run in a fixed priority order so the reason always names the most
specific limit that applies:

1. cooldown      - this conversation was answered too recently
2. hourly_limit  - this conversation hit its hourly cap
3. daily_limit   - this conversation hit its daily cap
4. global_limit  - the whole bot hit its per-minute or per-hour cap
"""

import random
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from pacebot.config.schema import LimitsConfig
from pacebot.quota.store import DAY, HOUR, MINUTE, QuotaStore


class RejectReason(str, Enum):
    """Why a reply was not admitted."""
    NONE = "none"
    COOLDOWN = "cooldown"
    HOURLY_LIMIT = "hourly_limit"
    DAILY_LIMIT = "daily_limit"
    GLOBAL_LIMIT = "global_limit"


@dataclass(frozen=True)
class Decision:
    """Result of an admission check."""
    allowed: bool
    reason: RejectReason = RejectReason.NONE
    retry_after: float = 0.0  # Seconds

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def reject(cls, reason: RejectReason, retry_after: float) -> "Decision":
        return cls(allowed=False, reason=reason, retry_after=retry_after)


class RateLimiter:
    """
    Multi-tier rate limiter backed by a QuotaStore.

    `evaluate` only reads (besides pruning expired timestamps). `admit`
    evaluates and, when allowed, reserves a global slot in the same critical
    section so replies still in flight count against the global caps.
    `accept` records the sent reply and draws a fresh random cooldown;
    `release` returns the slot of a reply that was never sent.
    """

    def __init__(
        self,
        store: QuotaStore,
        config: LimitsConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.config = config or LimitsConfig()
        self._rng = rng or random.Random()

    def evaluate(self, conversation_id: str, now: float) -> Decision:
        """
        Decide whether a reply to `conversation_id` may be sent at `now`.

        Args:
            conversation_id: Conversation being answered.
            now: Current instant (epoch seconds).

        Returns:
            Decision with the first failing reason, or an allowing Decision.
        """
        record = self.store.get(conversation_id, now)

        if record is not None:
            elapsed = now - record.last_reply_instant
            if elapsed < record.cooldown_duration:
                remaining = min(record.cooldown_duration - elapsed, record.cooldown_duration)
                return Decision.reject(RejectReason.COOLDOWN, remaining)

            if record.count_since(now - HOUR) >= self.config.max_messages_per_user_hourly:
                return Decision.reject(RejectReason.HOURLY_LIMIT, HOUR)

            if len(record.recent_message_timestamps) >= self.config.max_messages_per_user_daily:
                return Decision.reject(RejectReason.DAILY_LIMIT, DAY)

        per_minute, per_hour = self.store.global_counts(now)
        if (
            per_minute >= self.config.max_messages_per_minute
            or per_hour >= self.config.max_messages_per_hour
        ):
            return Decision.reject(RejectReason.GLOBAL_LIMIT, MINUTE)

        return Decision.allow()

    def admit(self, conversation_id: str, now: float) -> Decision:
        """
        Evaluate and, if allowed, take a global slot at `now`.

        The caller must either `accept(..., reserved=True)` or `release(now)`.
        """
        with self.store.locked():
            decision = self.evaluate(conversation_id, now)
            if decision.allowed:
                self.store.reserve_global(now)
        return decision

    def release(self, admitted_at: float) -> None:
        """Return the global slot taken by `admit` at `admitted_at`."""
        if self.store.release_global(admitted_at):
            logger.debug(f"Released global slot reserved at {admitted_at:.3f}")

    def accept(self, conversation_id: str, now: float, reserved: bool = False) -> float:
        """
        Record a sent reply and start a new cooldown.

        Args:
            conversation_id: Conversation that was answered.
            now: Instant the reply went out.
            reserved: The global slot was already taken by `admit`.

        Returns:
            The cooldown drawn for this conversation, in seconds.
        """
        cooldown = self._rng.uniform(self.config.min_reply_delay, self.config.max_reply_delay)
        self.store.record_reply(conversation_id, now, cooldown, reserved=reserved)
        logger.debug(f"Reply accepted for {conversation_id}, next cooldown {cooldown:.1f}s")
        return cooldown

    def sweep(self, now: float) -> int:
        """Drop stale quota records. Returns the number removed."""
        removed = self.store.sweep(now)
        if removed:
            logger.info(f"Quota sweep removed {len(removed)} idle conversations")
        return len(removed)
