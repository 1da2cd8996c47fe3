"""Embedding function adapter over LiteLLM.

``LiteLLMEmbedder`` is a plain callable ``text -> list[float]``; anything
with that shape (a lambda in tests, a local model) can be used instead.
"""

from __future__ import annotations

import os
from collections.abc import Callable

import litellm

DEFAULT_EMBEDDING_MODEL = "ollama/nomic-embed-text"
DEFAULT_API_BASE = "http://localhost:11434"

EmbedFn = Callable[[str], list[float]]

_PROVIDER_KEYS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


class LiteLLMEmbedder:
    """Embed text with ``litellm.embedding()``.

    Args:
        model: LiteLLM model string, ``provider/model``.
        api_base: Endpoint override (Ollama server URL for local models).
    """

    def __init__(self, model: str = DEFAULT_EMBEDDING_MODEL, api_base: str | None = None) -> None:
        self.model = model
        self.api_base = api_base

    def __call__(self, text: str) -> list[float]:
        self.check_api_key()
        kwargs = {"api_base": self.api_base} if self.api_base else {}
        response = litellm.embedding(model=self.model, input=[text], **kwargs)
        return list(response.data[0]["embedding"])

    def check_api_key(self) -> None:
        """Raise RuntimeError if no API key is available for a hosted provider."""
        provider = self.model.split("/")[0].lower() if "/" in self.model else ""
        required_env = _PROVIDER_KEYS.get(provider)
        if required_env and not os.environ.get(required_env):
            raise RuntimeError(
                f"No API key found for provider '{provider}'. "
                f"Set the {required_env} environment variable."
            )
