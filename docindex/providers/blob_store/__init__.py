"""Blob store adapters."""

from docindex.providers.blob_store.local_blob_provider import LocalBlobStoreProvider

__all__ = ["LocalBlobStoreProvider"]
