"""
Quota tracking and admission control for PaceBot.

Provides:
- Per-conversation cooldowns with randomized length
- Hourly and daily per-conversation caps
- Global per-minute and per-hour caps
"""

from pacebot.quota.store import QuotaStore, UserQuota
from pacebot.quota.limiter import Decision, RateLimiter, RejectReason

__all__ = [
    "QuotaStore",
    "UserQuota",
    "Decision",
    "RateLimiter",
    "RejectReason",
]
