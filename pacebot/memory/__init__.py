"""Conversation memory for PaceBot."""

from pacebot.memory.store import MemoryStore, Turn

__all__ = ["MemoryStore", "Turn"]
