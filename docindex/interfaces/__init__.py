"""Abstract interfaces for every external store and service docindex uses.

Business logic depends only on these ABCs; concrete adapters live in
``docindex/providers/`` and are wired together in ``docindex/main.py``.

    Interface                  ->  Concrete implementation
    IBlobStoreProvider         ->  LocalBlobStoreProvider
    IMetadataStoreProvider     ->  SQLiteMetadataStoreProvider
    ITextExtractionProvider    ->  PyMuPDFExtractionProvider, TesseractExtractionProvider
    IEmbeddingProvider         ->  OpenAIEmbeddingProvider, NomicEmbeddingProvider
    ISearchIndexProvider       ->  ChromaDBSearchIndexProvider
    IChunkIndexProvider        ->  ChromaDBChunkIndexProvider
"""

from docindex.interfaces.blob_store_provider import IBlobStoreProvider
from docindex.interfaces.chunk_index_provider import IChunkIndexProvider
from docindex.interfaces.embedding_provider import IEmbeddingProvider
from docindex.interfaces.metadata_store_provider import IMetadataStoreProvider
from docindex.interfaces.search_index_provider import ISearchIndexProvider
from docindex.interfaces.text_extraction_provider import ITextExtractionProvider

__all__ = [
    "IBlobStoreProvider",
    "IChunkIndexProvider",
    "IEmbeddingProvider",
    "IMetadataStoreProvider",
    "ISearchIndexProvider",
    "ITextExtractionProvider",
]
