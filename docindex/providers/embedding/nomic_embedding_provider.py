"""Local ``nomic-embed-text`` adapter served by Ollama.

Ollama exposes an OpenAI-compatible ``/v1`` route, so requests go through
the same client as the hosted adapter. No key is needed.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from docindex.config.settings import Settings
from docindex.providers.embedding.batching import BatchedEmbeddingProvider

logger = structlog.get_logger(logger_name=__name__)

_NOMIC_MODEL = "nomic-embed-text"
_NOMIC_DIMENSION = 768
_OLLAMA_REQUEST_INPUT_LIMIT = 512


class NomicEmbeddingProvider(BatchedEmbeddingProvider):
    """Fallback embedder used when no hosted key is configured."""

    def __init__(self, settings: Settings) -> None:
        self._ollama_url = settings.ollama_base_url.rstrip("/")
        super().__init__(
            client=openai.AsyncOpenAI(base_url=f"{self._ollama_url}/v1", api_key="ollama"),
            model=_NOMIC_MODEL,
            dimension=_NOMIC_DIMENSION,
            batch_limit=_OLLAMA_REQUEST_INPUT_LIMIT,
        )

    def get_provider_name(self) -> str:
        return "nomic_embedding"

    def is_available(self) -> bool:
        """Query Ollama's model listing; any answer other than 200 counts as down."""
        if not self._ollama_url:
            return False
        try:
            response = httpx.get(f"{self._ollama_url}/api/tags", timeout=3.0)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.debug("ollama_unreachable", url=self._ollama_url, error=str(exc))
            return False
        return response.status_code == 200
