"""Shared request loop for endpoints that speak the OpenAI embeddings API.

Both the hosted OpenAI adapter and the local Ollama adapter send the same
``embeddings.create`` call; they differ only in client construction, model
naming and how many inputs one request may carry.
"""

from __future__ import annotations

from collections.abc import Iterator
from operator import attrgetter
from typing import Any

import openai
import structlog

from docindex.interfaces.embedding_provider import IEmbeddingProvider
from docindex.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

# Characters per token used when capping inputs; errs on the short side.
CHARS_PER_TOKEN = 3


def _batches(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class BatchedEmbeddingProvider(IEmbeddingProvider):
    """Base adapter that splits, caps and reorders embedding requests.

    Subclasses build the ``openai.AsyncOpenAI`` client and pass it in along
    with the model name, vector dimension, per-request input limit and an
    optional per-input token cap.
    """

    def __init__(
        self,
        client: Any,
        model: str,
        dimension: int,
        batch_limit: int,
        max_input_tokens: int | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._dimension = dimension
        self._batch_limit = batch_limit
        self._max_input_chars = max_input_tokens * CHARS_PER_TOKEN if max_input_tokens else None

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, returning one vector per input in input order."""
        if not texts:
            return []

        prepared = [self._cap(text) for text in texts]
        vectors: list[list[float]] = []
        for batch in _batches(prepared, self._batch_limit):
            vectors.extend(await self._request(batch))
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self._dimension

    async def _request(self, batch: list[str]) -> list[list[float]]:
        try:
            response = await self._client.embeddings.create(input=batch, model=self._model)
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"embedding request to {self._model} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        usage = getattr(response, "usage", None)
        logger.info(
            "embedding_batch_complete",
            provider=self.get_provider_name(),
            model=self._model,
            batch_size=len(batch),
            tokens=usage.total_tokens if usage else None,
        )
        # The API may answer out of order; ``index`` points back at the input.
        return [item.embedding for item in sorted(response.data, key=attrgetter("index"))]

    def _cap(self, text: str) -> str:
        if self._max_input_chars is None or len(text) <= self._max_input_chars:
            return text

        capped = text[: self._max_input_chars].rsplit(" ", 1)[0]
        logger.debug(
            "embedding_input_capped",
            model=self._model,
            original_chars=len(text),
            kept_chars=len(capped),
        )
        return capped
