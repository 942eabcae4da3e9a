"""Abstract base class for the document metadata store.

The metadata store is the authority on which documents exist and what state
they are in.  Records are partitioned by owner (``uploaded_by``).  Deletion
is logical: a deleted record stays in storage with ``is_deleted=True`` and
is excluded from every read and list query.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docindex.models.chat import ChatDocument
from docindex.models.document import DocumentRecord, DocumentStats, DocumentStatus


# Concrete implementation: SQLiteMetadataStoreProvider (docindex/providers/metadata_store/)
class IMetadataStoreProvider(ABC):
    """Contract for document record persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indexes if they do not exist.  Idempotent."""

    @abstractmethod
    async def create(self, record: DocumentRecord) -> str:
        """Persist a new record and return its id.

        Raises
        ------
        docindex.utils.errors.MetadataStoreError
            If the id already exists or the write fails.
        """

    @abstractmethod
    async def read(self, document_id: str) -> DocumentRecord | None:
        """Return the live record for *document_id*, or ``None``.

        Logically deleted records read as ``None``.
        """

    @abstractmethod
    async def update(self, document_id: str, updates: dict[str, Any]) -> DocumentRecord:
        """Merge *updates* into the stored record and replace it.

        The merge is read-then-replace: fields absent from *updates* keep
        their stored values and ``updated_at`` is always refreshed.  There
        is no concurrency token, so concurrent updates are last-write-wins.

        Parameters
        ----------
        document_id:
            Record to update.
        updates:
            Field names of :class:`DocumentRecord` mapped to new values.

        Returns
        -------
        DocumentRecord
            The record as stored after the merge.

        Raises
        ------
        docindex.utils.errors.NotFoundError
            If the record does not exist or is logically deleted.
        """

    @abstractmethod
    async def logical_delete(self, document_id: str) -> None:
        """Mark the record deleted.

        Raises
        ------
        docindex.utils.errors.NotFoundError
            If the record does not exist or is already deleted.
        """

    @abstractmethod
    async def list_all(self) -> list[DocumentRecord]:
        """Return all live records, newest upload first."""

    @abstractmethod
    async def list_by_owner(self, uploaded_by: str) -> list[DocumentRecord]:
        """Return one owner's live records, newest upload first."""

    @abstractmethod
    async def list_by_type(self, file_type: str) -> list[DocumentRecord]:
        """Return live records of one content type, newest upload first."""

    @abstractmethod
    async def list_by_status(self, status: DocumentStatus) -> list[DocumentRecord]:
        """Return live records in one processing status, newest upload first."""

    @abstractmethod
    async def search_by_file_name(self, fragment: str) -> list[DocumentRecord]:
        """Return live records whose file name contains *fragment* (case-insensitive)."""

    @abstractmethod
    async def stats(self) -> DocumentStats:
        """Return totals over live records: count, by status, by type, total size."""

    # ------------------------------------------------------------------
    # Chat thread attachments
    # ------------------------------------------------------------------

    @abstractmethod
    async def record_chat_document(self, document: ChatDocument) -> None:
        """Record that a file was attached to a chat thread."""

    @abstractmethod
    async def list_chat_documents(self, chat_thread_id: str) -> list[ChatDocument]:
        """Return the live attachments of a chat thread, oldest first."""

    @abstractmethod
    async def delete_chat_documents(self, chat_thread_id: str) -> int:
        """Logically delete every attachment of a thread; return how many."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
