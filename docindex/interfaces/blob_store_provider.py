"""Abstract base class for raw-file (blob) storage providers.

The blob store holds the uploaded bytes under a key of the form
``{owner}/{epoch_millis}_{file_name}`` together with a small property map
(``originalName``, ``uploadedBy``, ``uploadedAt``, ``fileSize``).  It knows
nothing about document ids or processing status.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docindex.models.storage import BlobFile, BlobObject, BlobPutResult


# Concrete implementation: LocalBlobStoreProvider (docindex/providers/blob_store/)
class IBlobStoreProvider(ABC):
    """Contract for blob storage used by the upload and delete flows."""

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> BlobPutResult:
        """Store *data* under *key*, replacing any existing object.

        Parameters
        ----------
        key:
            Storage key; ``/`` separates the owner prefix from the name.
        data:
            Raw file bytes.
        content_type:
            MIME type recorded with the object and returned on :meth:`get`.
        metadata:
            String properties stored alongside the bytes.

        Returns
        -------
        BlobPutResult
            The key and a URL that addresses the stored object.

        Raises
        ------
        docindex.utils.errors.BlobStoreError
            If the write fails.
        """

    @abstractmethod
    async def get(self, key: str) -> BlobObject:
        """Read an object back.

        Raises
        ------
        docindex.utils.errors.NotFoundError
            If no object exists under *key*.
        docindex.utils.errors.BlobStoreError
            If the read fails for any other reason.
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete the object under *key*.

        Returns ``True`` if an object was removed, ``False`` if none existed.
        """

    @abstractmethod
    async def list(self, prefix: str = "") -> list[BlobFile]:
        """List objects whose key starts with *prefix*, newest first."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if an object is stored under *key*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this blob store."""
