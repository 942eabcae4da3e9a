"""Hosted embedding adapter for OpenAI and OpenAI-compatible endpoints.

Pointing ``openai_base_url`` at a compatible service (an Azure OpenAI proxy,
TogetherAI) switches the provider label so logs and ``/health`` show which
backend answered.
"""

from __future__ import annotations

import openai

from docindex.config.settings import Settings
from docindex.providers.embedding.batching import BatchedEmbeddingProvider

_DEFAULT_MODEL = "text-embedding-3-small"

# Inputs per embeddings request accepted by the OpenAI API.
_REQUEST_INPUT_LIMIT = 2048

_KNOWN_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}

_SHORT_CONTEXT_MODELS: dict[str, int] = {
    "BAAI/bge-base-en-v1.5": 512,
    "BAAI/bge-large-en-v1.5": 512,
}

# Whole documents go through this adapter on the admin path.
_LONG_CONTEXT_TOKENS = 8191


class OpenAIEmbeddingProvider(BatchedEmbeddingProvider):
    """Embeds through ``text-embedding-3-small`` unless another model is configured.

    Models missing from the dimension table fall back to
    ``settings.embedding_dimension``.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )
        model = settings.openai_embedding_model or _DEFAULT_MODEL

        client = openai.AsyncOpenAI(
            api_key=self._api_key,
            base_url=settings.openai_base_url or None,
        )
        super().__init__(
            client=client,
            model=model,
            dimension=_KNOWN_DIMENSIONS.get(model, settings.embedding_dimension),
            batch_limit=_REQUEST_INPUT_LIMIT,
            max_input_tokens=_SHORT_CONTEXT_MODELS.get(model, _LONG_CONTEXT_TOKENS),
        )

    def get_provider_name(self) -> str:
        return self._label

    def is_available(self) -> bool:
        """A configured key is treated as available; no request is made."""
        return bool(self._api_key)
