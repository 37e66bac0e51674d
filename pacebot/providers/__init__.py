"""Generation backend abstraction module."""

from pacebot.providers.base import GenerationBackend
from pacebot.providers.litellm_provider import LiteLLMBackend

__all__ = ["GenerationBackend", "LiteLLMBackend"]
