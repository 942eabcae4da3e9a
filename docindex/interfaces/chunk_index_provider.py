"""Abstract base class for the chat chunk index.

Unlike the document search index, the chunk index holds many entries per
file: one per chunk, tagged with the chat thread and user it belongs to.
Deletion is by thread.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docindex.models.chat import ChatChunkMatch, ChatDocumentChunk


# Concrete implementation: ChromaDBChunkIndexProvider (docindex/providers/chunk_index/)
class IChunkIndexProvider(ABC):
    """Contract for per-thread chunk storage and similarity search."""

    @abstractmethod
    async def ensure_index_exists(self) -> None:
        """Create the chunk index if it does not exist.  Idempotent."""

    @abstractmethod
    async def upsert_chunks(self, chunks: list[ChatDocumentChunk]) -> int:
        """Write chunks that carry an embedding.  Returns how many were written."""

    @abstractmethod
    async def delete_by_thread(self, chat_thread_id: str) -> int:
        """Delete every chunk of a thread.  Returns how many were deleted."""

    @abstractmethod
    async def similarity_search(
        self,
        query_vector: list[float],
        k: int,
        chat_thread_id: str,
        user: str | None = None,
    ) -> list[ChatChunkMatch]:
        """Return the *k* nearest chunks within one thread, closest first."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this index."""
