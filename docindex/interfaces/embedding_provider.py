"""Contract for turning text into vectors.

The document pipeline embeds each document's full text once; the chat
ingestion path embeds paragraph chunks; search embeds the query. All three
go through this interface, so the index dimension and the provider's
dimension must agree.

Implementations live in ``docindex/providers/embedding/``:
``OpenAIEmbeddingProvider`` (hosted or OpenAI-compatible) and
``NomicEmbeddingProvider`` (Ollama, local).
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IEmbeddingProvider(ABC):
    """Embeds text for the search index and the chat chunk index."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per entry of *texts*, in the same order.

        Implementations split oversized requests themselves. An empty input
        returns an empty list without contacting the backend.

        Raises
        ------
        docindex.utils.errors.EmbeddingError
            The backend rejected the request or could not be reached.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Embed one string, typically a search query."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Vector length; fixed for the provider's lifetime."""

    @abstractmethod
    def get_provider_name(self) -> str:
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """``True`` when the provider is configured (and, for local servers, reachable)."""
