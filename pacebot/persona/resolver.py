"""
Persona lookup for PaceBot.

Maps a conversation id to the role context placed at the head of every
generation request. Overrides are keyed by phone-number-like ids, with or
without the network suffix (e.g. "2348012345678" or "2348012345678@c.us").
"""

from pathlib import Path
from typing import Any

from loguru import logger

from pacebot.utils.helpers import read_json_snapshot


class ContextResolver:
    """Resolves the persona text for a conversation."""

    def __init__(
        self,
        default_persona: str,
        overrides: dict[str, str] | None = None,
        network_suffixes: list[str] | None = None,
    ):
        self.default_persona = default_persona
        self.network_suffixes = list(network_suffixes or [])
        self._overrides: dict[str, str] = dict(overrides or {})

    @classmethod
    def from_file(
        cls,
        path: Path,
        default_persona: str,
        network_suffixes: list[str] | None = None,
    ) -> "ContextResolver":
        """Build a resolver from a JSON override table; bad entries are skipped."""
        data = read_json_snapshot(path)
        overrides = cls._clean_overrides(data)
        if overrides:
            logger.info(f"Loaded {len(overrides)} persona overrides from {path}")
        return cls(default_persona, overrides, network_suffixes)

    @staticmethod
    def _clean_overrides(data: dict[str, Any]) -> dict[str, str]:
        overrides = {}
        for key, value in data.items():
            if isinstance(value, str) and value.strip():
                overrides[str(key)] = value
            else:
                logger.warning(f"Ignoring persona override for {key!r}: not a non-empty string")
        return overrides

    def normalize(self, conversation_id: str) -> str:
        """Strip a known network suffix from a conversation id."""
        for suffix in self.network_suffixes:
            if suffix and conversation_id.endswith(suffix):
                return conversation_id[: -len(suffix)]
        return conversation_id

    def resolve(self, conversation_id: str) -> str:
        """
        Get the persona for a conversation.

        Lookup order: exact id, id without network suffix, default persona.
        """
        persona = self._overrides.get(conversation_id)
        if persona is not None:
            return persona

        normalized = self.normalize(conversation_id)
        if normalized != conversation_id:
            persona = self._overrides.get(normalized)
            if persona is not None:
                return persona

        return self.default_persona

    @property
    def override_count(self) -> int:
        return len(self._overrides)
