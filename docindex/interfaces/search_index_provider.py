"""Abstract base class for the document search index.

The search index holds one entry per completed document, keyed by the same
id as the metadata record, with the document text, its embedding vector and
filterable metadata.  Queries combine keyword and vector similarity and are
ranked by the index's own similarity score.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docindex.models.search import IndexStats, SearchIndexDocument, SearchResult


# Concrete implementation: ChromaDBSearchIndexProvider (docindex/providers/search_index/)
class ISearchIndexProvider(ABC):
    """Contract for document-level indexing and hybrid search.

    **Filter syntax** (the *filters* dict in :meth:`query`) is a flat
    equality map over filterable fields, e.g.
    ``{"file_type": "application/pdf", "uploaded_by": "alice"}``.  Filters
    are structured values; providers never accept raw filter strings.
    """

    @abstractmethod
    async def ensure_index_exists(self) -> None:
        """Create the index with its fixed schema if it does not exist.

        Idempotent.  When the index already exists its recorded schema is
        checked against the configured one.

        Raises
        ------
        docindex.utils.errors.SearchIndexError
            If the index exists with an incompatible vector dimension.
        """

    @abstractmethod
    async def upsert(self, documents: list[SearchIndexDocument]) -> int:
        """Write *documents*, replacing any entry with the same id.

        Returns
        -------
        int
            Number of documents written.
        """

    @abstractmethod
    async def delete(self, document_ids: list[str]) -> int:
        """Delete entries by id.  Returns the number of ids submitted."""

    @abstractmethod
    async def query(
        self,
        text: str,
        filters: dict[str, Any] | None = None,
        top: int = 10,
    ) -> list[SearchResult]:
        """Run a hybrid keyword + vector search.

        Parameters
        ----------
        text:
            Query text; embedded for the vector half and matched literally
            for the keyword half.
        filters:
            Equality filters over filterable fields.
        top:
            Maximum number of results.

        Returns
        -------
        list[SearchResult]
            Results ordered by descending native similarity score.
        """

    @abstractmethod
    async def get_document(self, document_id: str) -> SearchIndexDocument | None:
        """Return the stored entry for *document_id*, or ``None``."""

    @abstractmethod
    async def count(self) -> IndexStats:
        """Return the document count and storage size of the index."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this index."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the index backend is reachable."""
