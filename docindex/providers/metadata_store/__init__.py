"""Metadata store adapters."""

from docindex.providers.metadata_store.sqlite_metadata_provider import (
    SQLiteMetadataStoreProvider,
)

__all__ = ["SQLiteMetadataStoreProvider"]
