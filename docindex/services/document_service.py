"""Document management: listing, deletion, download, search and statistics.

Read-side and administrative operations over the three stores.  The
metadata store is the authority on which documents exist; the blob store
and search index are consulted only for documents it returns.

Deletion walks the stores in a fixed order (blob, then index entry if one
was written, then the record) and treats each step as best-effort: a
failing step is logged and the walk continues, so the record is always
logically deleted even if bytes or an index entry are left behind.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from docindex.interfaces.blob_store_provider import IBlobStoreProvider
from docindex.interfaces.embedding_provider import IEmbeddingProvider
from docindex.interfaces.metadata_store_provider import IMetadataStoreProvider
from docindex.interfaces.search_index_provider import ISearchIndexProvider
from docindex.models.document import (
    DocumentInfo,
    DocumentRecord,
    DocumentStats,
    DocumentStatus,
    DownloadResult,
)
from docindex.models.search import SearchResult
from docindex.services.ingestion.sanitizer import sanitize_content
from docindex.utils.errors import ConfigurationError, NotFoundError
from docindex.utils.logging import get_logger


class DocumentManagementService:
    """Facade over the blob store, metadata store and search index."""

    def __init__(
        self,
        blob_store: IBlobStoreProvider,
        metadata_store: IMetadataStoreProvider,
        search_index: ISearchIndexProvider,
        embedding_provider: IEmbeddingProvider | None = None,
        default_top: int = 10,
    ) -> None:
        self._blob_store = blob_store
        self._metadata_store = metadata_store
        self._search_index = search_index
        self._embedding_provider = embedding_provider
        self._default_top = default_top
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_documents(
        self,
        uploaded_by: str | None = None,
        status: DocumentStatus | None = None,
        file_type: str | None = None,
        name_contains: str | None = None,
    ) -> list[DocumentInfo]:
        """Return live documents, newest upload first.

        At most one store query is issued, chosen from the most selective
        filter given; remaining filters are applied to its result.
        """
        if uploaded_by is not None:
            records = await self._metadata_store.list_by_owner(uploaded_by)
        elif name_contains:
            records = await self._metadata_store.search_by_file_name(name_contains)
        elif status is not None:
            records = await self._metadata_store.list_by_status(status)
        elif file_type is not None:
            records = await self._metadata_store.list_by_type(file_type)
        else:
            records = await self._metadata_store.list_all()

        filtered = [
            r
            for r in records
            if (status is None or r.status == status)
            and (file_type is None or r.file_type == file_type)
            and (not name_contains or name_contains.lower() in r.file_name.lower())
        ]
        return [DocumentInfo.from_record(r) for r in filtered]

    async def get_document(self, document_id: str) -> DocumentInfo:
        return DocumentInfo.from_record(await self._require(document_id))

    # ------------------------------------------------------------------
    # Deletion / download
    # ------------------------------------------------------------------

    async def delete(self, document_id: str) -> None:
        """Delete a document from all three stores, each step best-effort.

        Raises
        ------
        NotFoundError
            If the document does not exist or is already deleted.
        """
        record = await self._require(document_id)
        log = self._logger.bind(document_id=document_id)

        try:
            await self._blob_store.delete(record.blob_name)
        except Exception as exc:
            log.warning("delete_blob_failed", blob_name=record.blob_name, error=str(exc))

        if record.search_index_id:
            try:
                await self._search_index.delete([record.search_index_id])
            except Exception as exc:
                log.warning(
                    "delete_index_entry_failed",
                    search_index_id=record.search_index_id,
                    error=str(exc),
                )

        await self._metadata_store.logical_delete(document_id)
        log.info("document_deleted", had_index_entry=bool(record.search_index_id))

    async def download(self, document_id: str) -> DownloadResult:
        record = await self._require(document_id)
        blob = await self._blob_store.get(record.blob_name)
        return DownloadResult(
            data=blob.data,
            content_type=record.file_type or blob.content_type,
            file_name=record.file_name,
        )

    # ------------------------------------------------------------------
    # Search / stats
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        filters: dict[str, Any] | None = None,
        top: int | None = None,
    ) -> list[SearchResult]:
        """Hybrid search; blank queries and queries with control characters return nothing."""
        text = sanitize_content(query)
        if text is None:
            self._logger.info("search_query_rejected", query_length=len(query or ""))
            return []
        return await self._search_index.query(text, filters=filters, top=top or self._default_top)

    async def stats(self) -> DocumentStats:
        """Return metadata totals together with the search index counts."""
        metadata_stats, index_stats = await asyncio.gather(
            self._metadata_store.stats(), self._search_index.count()
        )
        return metadata_stats.model_copy(update={"index_stats": index_stats.model_dump()})

    # ------------------------------------------------------------------
    # User-editable fields
    # ------------------------------------------------------------------

    async def update_tags(self, document_id: str, tags: list[str]) -> DocumentInfo:
        return await self._update_fields(document_id, {"tags": _clean_labels(tags)})

    async def update_categories(self, document_id: str, categories: list[str]) -> DocumentInfo:
        return await self._update_fields(document_id, {"categories": _clean_labels(categories)})

    async def update_description(self, document_id: str, description: str | None) -> DocumentInfo:
        return await self._update_fields(document_id, {"description": description})

    # ------------------------------------------------------------------
    # Startup checks
    # ------------------------------------------------------------------

    async def ensure_search_is_configured(self) -> None:
        """Bootstrap the search index and check the embedding provider.

        Raises
        ------
        ConfigurationError
            If the embedding provider is missing or not available.
        """
        if self._embedding_provider is None or not self._embedding_provider.is_available():
            raise ConfigurationError("No available embedding provider for document search")
        await self._search_index.ensure_index_exists()
        self._logger.info(
            "search_configured",
            embedding_provider=self._embedding_provider.get_provider_name(),
            search_index=self._search_index.get_provider_name(),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _require(self, document_id: str) -> DocumentRecord:
        record = await self._metadata_store.read(document_id)
        if record is None:
            raise NotFoundError(f"Document {document_id} not found")
        return record

    async def _update_fields(self, document_id: str, updates: dict[str, Any]) -> DocumentInfo:
        record = await self._metadata_store.update(document_id, updates)
        self._logger.info("document_fields_updated", document_id=document_id, fields=sorted(updates))
        return DocumentInfo.from_record(record)


def _clean_labels(labels: list[str]) -> list[str]:
    """Strip labels, drop blanks and duplicates, keep first-seen order."""
    seen: dict[str, None] = {}
    for label in labels:
        stripped = label.strip()
        if stripped:
            seen.setdefault(stripped, None)
    return list(seen)
