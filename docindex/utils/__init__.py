"""Utility modules for docindex.

- **errors** -- Domain exception hierarchy rooted at DocIndexError; each
  adapter raises its own subclass so callers can handle failures by kind.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from docindex.utils.errors import (
    AdapterError,
    BlobStoreError,
    ConfigurationError,
    DocIndexError,
    EmbeddingError,
    ExtractionError,
    MetadataStoreError,
    NotFoundError,
    PipelineError,
    SearchIndexError,
    ValidationError,
)
from docindex.utils.logging import configure_logging, get_logger

__all__ = [
    "AdapterError",
    "BlobStoreError",
    "ConfigurationError",
    "DocIndexError",
    "EmbeddingError",
    "ExtractionError",
    "MetadataStoreError",
    "NotFoundError",
    "PipelineError",
    "SearchIndexError",
    "ValidationError",
    "configure_logging",
    "get_logger",
]
