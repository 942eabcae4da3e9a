"""Chat chunk index adapters."""

from docindex.providers.chunk_index.chromadb_chunk_provider import ChromaDBChunkIndexProvider

__all__ = ["ChromaDBChunkIndexProvider"]
