"""Generation backend interface."""

from abc import ABC, abstractmethod
from typing import Any


class GenerationBackend(ABC):
    """
    Turns an ordered list of role-tagged messages into a reply.

    The first message carries the persona; the rest alternate user and
    assistant turns, ending with the message being answered.
    """

    @abstractmethod
    async def generate(self, messages: list[dict[str, Any]]) -> str:
        """
        Generate a reply.

        Args:
            messages: List of {"role": ..., "content": ...} dicts.

        Returns:
            The reply text, stripped of surrounding whitespace.

        Raises:
            Exception: Any backend failure; callers treat it as transient.
        """
