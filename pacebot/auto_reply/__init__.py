"""
Auto-reply system for PaceBot.

Provides paced, rate-limited message handling:
- In-flight gating per conversation
- Directive extraction from generated replies
- Human-like pacing around delivery
- Deferred replies during cooldowns
"""

from pacebot.auto_reply.tracker import InFlightTracker
from pacebot.auto_reply.directives import (
    ParsedReply,
    ReplyDirectives,
    parse_reply,
)
from pacebot.auto_reply.pacing import PacingActions, PacingPipeline
from pacebot.auto_reply.deferred import DeferredMessage, DeferredReplies
from pacebot.auto_reply.dispatch import (
    DispatchConfig,
    DispatchOutcome,
    ReplyDispatcher,
)

__all__ = [
    # Gate
    "InFlightTracker",
    # Directives
    "ParsedReply",
    "ReplyDirectives",
    "parse_reply",
    # Pacing
    "PacingActions",
    "PacingPipeline",
    # Deferral
    "DeferredMessage",
    "DeferredReplies",
    # Dispatch
    "DispatchConfig",
    "DispatchOutcome",
    "ReplyDispatcher",
]
