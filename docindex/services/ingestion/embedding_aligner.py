"""Position-preserving embedding of mixed valid and invalid contents.

Only contents that pass :func:`sanitize_content` are sent to the embedding
provider, in one batch.  The returned vectors are written back to the
positions they came from, so callers can zip the result with their
original list: skipped positions hold ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from docindex.interfaces.embedding_provider import IEmbeddingProvider
from docindex.services.ingestion.sanitizer import sanitize_content
from docindex.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class AlignedEmbeddings:
    """Vectors aligned with the input list; ``None`` where a content was skipped."""

    vectors: list[list[float] | None]
    skipped: list[int] = field(default_factory=list)

    @property
    def embedded_count(self) -> int:
        return len(self.vectors) - len(self.skipped)


class EmbeddingAligner:
    """Embeds the valid subset of a content list and realigns the vectors."""

    def __init__(self, embedding_provider: IEmbeddingProvider) -> None:
        self._embedding_provider = embedding_provider

    async def embed_aligned(self, contents: list[Any]) -> AlignedEmbeddings:
        """Embed *contents*, returning one slot per input.

        Raises
        ------
        EmbeddingError
            If the provider returns a different number of vectors than
            texts it was sent.
        """
        positions: list[int] = []
        texts: list[str] = []
        skipped: list[int] = []
        for position, content in enumerate(contents):
            text = sanitize_content(content)
            if text is None:
                skipped.append(position)
                continue
            positions.append(position)
            texts.append(text)

        vectors: list[list[float] | None] = [None] * len(contents)
        if texts:
            embedded = await self._embedding_provider.embed(texts)
            if len(embedded) != len(texts):
                raise EmbeddingError(
                    message=(
                        f"Embedding count mismatch: sent {len(texts)} texts, "
                        f"received {len(embedded)} vectors"
                    ),
                    provider_name=self._embedding_provider.get_provider_name(),
                )
            for position, vector in zip(positions, embedded, strict=True):
                vectors[position] = vector

        if skipped:
            logger.info(
                "embedding_inputs_skipped",
                skipped=len(skipped),
                embedded=len(texts),
                positions=skipped,
            )
        return AlignedEmbeddings(vectors=vectors, skipped=skipped)
