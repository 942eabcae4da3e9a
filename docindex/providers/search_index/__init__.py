"""Search index adapters."""

from docindex.providers.search_index.chromadb_search_provider import (
    ChromaDBSearchIndexProvider,
)

__all__ = ["ChromaDBSearchIndexProvider"]
