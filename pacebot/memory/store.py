"""
Conversation memory for PaceBot.

Manages:
- Bounded per-conversation turn history (oldest turns evicted first)
- Recent-window reads used to build generation requests
- Dirty tracking so the flusher persists only when something changed

Snapshot format:
    { conversation_id: [ {"role": "user", "content": "..."}, ... ], ... }
"""

from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Literal

from pacebot.utils.snapshot import SnapshotStore

Role = Literal["user", "assistant"]
ROLES: tuple[str, ...] = ("user", "assistant")


@dataclass(frozen=True)
class Turn:
    """A single message in a conversation."""
    role: Role
    content: str

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown role: {self.role!r}")
        if not isinstance(self.content, str):
            raise TypeError("Turn content must be a string")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Turn":
        """Create from dictionary."""
        role = data["role"]
        # Gemini-era snapshots stored bot turns as "model"
        if role == "model":
            role = "assistant"
        return cls(role=role, content=data["content"])


class MemoryStore(SnapshotStore):
    """
    Bounded, ordered turn history keyed by conversation id.

    Appends are O(1): each history is a deque capped at `max_turns`.
    """

    name = "memory"

    def __init__(self, max_turns: int = 100):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        super().__init__()
        self.max_turns = max_turns
        self._histories: dict[str, deque[Turn]] = {}

    def append(self, conversation_id: str, role: Role, content: str) -> Turn:
        """
        Append a turn, evicting the oldest one if the history is full.

        Args:
            conversation_id: Conversation the turn belongs to.
            role: "user" or "assistant".
            content: Message text.

        Returns:
            The stored Turn.
        """
        turn = Turn(role=role, content=content)
        with self._lock:
            history = self._histories.get(conversation_id)
            if history is None:
                history = deque(maxlen=self.max_turns)
                self._histories[conversation_id] = history
            history.append(turn)
            self._mark_dirty()
        return turn

    def recent_window(self, conversation_id: str, n: int) -> list[Turn]:
        """Get at most the last `n` turns, oldest first."""
        if n <= 0:
            return []
        with self._lock:
            history = self._histories.get(conversation_id)
            if not history:
                return []
            return list(history)[-n:]

    def history(self, conversation_id: str) -> list[Turn]:
        """Get the full stored history for a conversation."""
        with self._lock:
            return list(self._histories.get(conversation_id, ()))

    def clear(self, conversation_id: str) -> bool:
        """Forget a conversation's history."""
        with self._lock:
            if self._histories.pop(conversation_id, None) is None:
                return False
            self._mark_dirty()
            return True

    def conversation_ids(self) -> list[str]:
        with self._lock:
            return list(self._histories)

    def get_stats(self) -> dict[str, Any]:
        """Get memory usage statistics."""
        with self._lock:
            return {
                "conversations": len(self._histories),
                "total_turns": sum(len(h) for h in self._histories.values()),
                "max_turns": self.max_turns,
                "dirty": self._dirty,
            }

    def to_snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                conversation_id: [turn.to_dict() for turn in history]
                for conversation_id, history in self._histories.items()
            }

    def load_snapshot(self, data: dict[str, Any]) -> None:
        histories: dict[str, deque[Turn]] = {}
        for conversation_id, turns in data.items():
            if not isinstance(turns, list):
                raise TypeError(f"history for {conversation_id!r} must be a list")
            # A snapshot written with a larger bound keeps only the newest turns
            histories[str(conversation_id)] = deque(
                (Turn.from_dict(t) for t in turns),
                maxlen=self.max_turns,
            )
        with self._lock:
            self._histories = histories

    def __len__(self) -> int:
        return len(self._histories)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._histories
