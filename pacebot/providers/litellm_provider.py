"""LiteLLM generation backend for multi-provider support."""

import os
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from pacebot.config.schema import ProviderConfig
from pacebot.providers.base import GenerationBackend


class LiteLLMBackend(GenerationBackend):
    """
    Generation backend using LiteLLM.

    Model names carry their provider prefix (e.g. 'gemini/gemini-2.5-flash',
    'openrouter/...', 'anthropic/...') and LiteLLM routes accordingly.
    """

    # Environment variable LiteLLM reads for each provider prefix
    PROVIDER_ENV_KEYS = {
        "gemini": "GEMINI_API_KEY",
        "openrouter": "OPENROUTER_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "openai": "OPENAI_API_KEY",
        "deepseek": "DEEPSEEK_API_KEY",
    }

    def __init__(self, config: ProviderConfig | None = None):
        self.config = config or ProviderConfig()

        # Usage tracking
        self._request_count = 0
        self._error_count = 0
        self._total_tokens = 0

        self._configure_environment()

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True

    @property
    def provider(self) -> str:
        """Provider prefix of the configured model."""
        model = self.config.model
        return model.split("/", 1)[0] if "/" in model else "openai"

    def _configure_environment(self) -> None:
        """Expose the configured API key under the variable LiteLLM expects."""
        if not self.config.api_key:
            return
        env_key = self.PROVIDER_ENV_KEYS.get(self.provider, "OPENAI_API_KEY")
        os.environ.setdefault(env_key, self.config.api_key)

    async def generate(self, messages: list[dict[str, Any]]) -> str:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base

        try:
            response = await acompletion(**kwargs)
        except Exception:
            self._error_count += 1
            raise

        self._request_count += 1
        usage = getattr(response, "usage", None)
        if usage is not None:
            self._total_tokens += getattr(usage, "total_tokens", 0) or 0

        content = response.choices[0].message.content or ""
        logger.debug(f"Generated {len(content)} chars with {self.config.model}")
        return content.strip()

    def get_stats(self) -> dict[str, Any]:
        """Get usage statistics."""
        return {
            "model": self.config.model,
            "requests": self._request_count,
            "errors": self._error_count,
            "total_tokens": self._total_tokens,
        }
