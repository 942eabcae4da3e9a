"""Ingestion orchestrator: upload, background processing and reconciliation.

Coordinates the content validator, blob store, metadata store, text
extraction, embedding and search index into a two-part flow.

The **request part** (:meth:`DocumentIngestionPipeline.upload`) validates
the file, writes the bytes to the blob store, creates the metadata record
with ``status=uploaded``, hands the rest to the background task runner and
returns.  The caller learns only that the document was accepted.

The **continuation** (:meth:`DocumentIngestionPipeline.process_document`)
runs detached::

    processing -> extract -> sanitise -> embed -> index -> completed
                                                          (any failure) -> error

The three stores are written in sequence with no transaction around them.
A failure never rolls back earlier writes and is never retried; the record
simply ends in ``error``.  A crash after the record is created but before
the continuation runs leaves the record in ``uploaded`` until the optional
stale-record sweep marks it ``error``.
"""

from __future__ import annotations

import asyncio
import secrets
import string
import time
from datetime import timedelta
from pathlib import PurePosixPath

import structlog

from docindex.interfaces.blob_store_provider import IBlobStoreProvider
from docindex.interfaces.metadata_store_provider import IMetadataStoreProvider
from docindex.interfaces.search_index_provider import ISearchIndexProvider
from docindex.models.document import (
    DocumentRecord,
    DocumentStatus,
    UploadedFile,
    UploadResult,
    utc_now,
)
from docindex.models.search import SearchIndexDocument
from docindex.pipeline.task_runner import BackgroundTaskRunner
from docindex.services.extraction_service import TextExtractionService
from docindex.services.ingestion.embedding_aligner import EmbeddingAligner
from docindex.services.ingestion.sanitizer import sanitize_content
from docindex.services.validation import ContentValidator
from docindex.utils.errors import (
    EmbeddingError,
    ExtractionError,
    NotFoundError,
    PipelineError,
)
from docindex.utils.logging import get_logger

_ID_ALPHABET = string.ascii_lowercase + string.digits

UPLOAD_ACCEPTED_MESSAGE = "File uploaded successfully. Processing..."
UPLOAD_FAILED_MESSAGE = "Upload failed"


def new_document_id() -> str:
    """Return an id of the form ``doc_<epoch millis>_<9 base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"doc_{int(time.time() * 1000)}_{suffix}"


def blob_key_for(uploaded_by: str, file_name: str, timestamp_ms: int | None = None) -> str:
    """Return the blob key ``{owner}/{epoch millis}_{file name}``.

    Path separators are stripped from both parts so a key always has
    exactly one ``/``.
    """
    owner = uploaded_by.replace("/", "_").replace("\\", "_").strip(".") or "anonymous"
    name = PurePosixPath(file_name.replace("\\", "/")).name or "upload"
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{owner}/{stamp}_{name}"


class DocumentIngestionPipeline:
    """Accepts uploads and drives each document to ``completed`` or ``error``.

    All collaborators are injected; the pipeline never constructs adapters.
    """

    def __init__(
        self,
        validator: ContentValidator,
        blob_store: IBlobStoreProvider,
        metadata_store: IMetadataStoreProvider,
        extraction_service: TextExtractionService,
        embedding_aligner: EmbeddingAligner,
        search_index: ISearchIndexProvider,
        task_runner: BackgroundTaskRunner,
    ) -> None:
        self._validator = validator
        self._blob_store = blob_store
        self._metadata_store = metadata_store
        self._extraction_service = extraction_service
        self._embedding_aligner = embedding_aligner
        self._search_index = search_index
        self._task_runner = task_runner
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def task_runner(self) -> BackgroundTaskRunner:
        return self._task_runner

    @property
    def max_upload_bytes(self) -> int:
        return self._validator.policy.max_bytes

    # ------------------------------------------------------------------
    # Request part
    # ------------------------------------------------------------------

    async def upload(self, upload: UploadedFile) -> UploadResult:
        """Validate, store bytes, create the record and queue processing.

        Validation failures return ``success=False`` without touching any
        store.  Store failures are logged and returned as a generic
        failure; by then the blob may already exist.
        """
        validation = self._validator.validate(upload.file_name, upload.size)
        if not validation.ok:
            self._logger.info(
                "upload_rejected",
                file_name=upload.file_name,
                size=upload.size,
                code=validation.code,
            )
            return UploadResult(success=False, message=validation.reason, error=validation.code)

        document_id = new_document_id()
        uploaded_at = utc_now()
        blob_name = blob_key_for(upload.uploaded_by, upload.file_name)

        try:
            stored = await self._blob_store.put(
                blob_name,
                upload.data,
                upload.content_type,
                metadata={
                    "originalName": upload.file_name,
                    "uploadedBy": upload.uploaded_by,
                    "uploadedAt": uploaded_at.isoformat(),
                    "fileSize": str(upload.size),
                },
            )
            await self._metadata_store.create(
                DocumentRecord(
                    id=document_id,
                    file_name=upload.file_name,
                    file_type=upload.content_type,
                    file_size=upload.size,
                    uploaded_by=upload.uploaded_by,
                    uploaded_at=uploaded_at,
                    blob_name=blob_name,
                    blob_url=stored.url,
                    status=DocumentStatus.UPLOADED,
                )
            )
        except Exception as exc:
            self._logger.error(
                "upload_failed",
                file_name=upload.file_name,
                document_id=document_id,
                error=str(exc),
                exc_info=True,
            )
            return UploadResult(success=False, message=UPLOAD_FAILED_MESSAGE, error=str(exc))

        self._task_runner.submit(document_id, self.process_document(document_id, upload))
        self._logger.info(
            "upload_accepted",
            document_id=document_id,
            file_name=upload.file_name,
            size=upload.size,
            uploaded_by=upload.uploaded_by,
        )
        return UploadResult(success=True, document_id=document_id, message=UPLOAD_ACCEPTED_MESSAGE)

    # ------------------------------------------------------------------
    # Continuation
    # ------------------------------------------------------------------

    async def process_document(self, document_id: str, upload: UploadedFile) -> None:
        """Run extraction, embedding and indexing for one uploaded document.

        Never raises: every failure is logged and recorded as
        ``status=error``.  If even that write fails, it is logged and
        dropped, leaving the record in its last written state.
        """
        log = self._logger.bind(document_id=document_id, file_name=upload.file_name)
        try:
            record = await self._metadata_store.update(
                document_id, {"status": DocumentStatus.PROCESSING}
            )
            log.info("document_processing_started")

            extracted = await self._extraction_service.extract(upload.data, upload.file_name)
            content = sanitize_content(extracted.content)
            if content is None:
                raise ExtractionError(
                    f"Extracted text of {upload.file_name} is empty or contains control characters"
                )
            log.info(
                "document_text_extracted",
                pages=extracted.pages,
                confidence=round(extracted.confidence, 4),
                characters=len(content),
            )

            aligned = await self._embedding_aligner.embed_aligned([content])
            vector = aligned.vectors[0]
            if vector is None:
                raise EmbeddingError(f"No embedding produced for {upload.file_name}")

            blob_url = record.blob_url or await self._find_blob_url(record)
            await self._search_index.upsert(
                [
                    SearchIndexDocument(
                        id=record.id,
                        file_name=record.file_name,
                        content=content,
                        content_vector=vector,
                        file_type=record.file_type,
                        file_size=record.file_size,
                        uploaded_by=record.uploaded_by,
                        uploaded_at=record.uploaded_at,
                        blob_url=blob_url,
                        pages=extracted.pages,
                        confidence=extracted.confidence,
                        categories=record.categories,
                        tags=record.tags,
                    )
                ]
            )

            try:
                await self._metadata_store.update(
                    document_id,
                    {
                        "status": DocumentStatus.COMPLETED,
                        "pages": extracted.pages,
                        "confidence": extracted.confidence,
                        "search_index_id": record.id,
                    },
                )
            except NotFoundError:
                # Deleted while processing; the delete flow saw no index id.
                log.warning("document_deleted_during_processing")
                await self._drop_index_entry(record.id)
                return
            log.info("document_processing_completed", pages=extracted.pages)

        except asyncio.CancelledError:
            log.warning("document_processing_cancelled")
            raise
        except Exception as exc:
            log.error("document_processing_failed", error=str(exc), exc_info=True)
            await self._mark_error(document_id)

    # ------------------------------------------------------------------
    # Stale-record sweep
    # ------------------------------------------------------------------

    async def reconcile_stale(self, older_than: timedelta) -> list[str]:
        """Mark records stuck in ``uploaded`` or ``processing`` as ``error``.

        A record is stuck when it was last updated more than *older_than*
        ago and no continuation for it is running in this process.  The
        sweep never retries processing.

        Returns
        -------
        list[str]
            Ids of the records that were marked ``error``.
        """
        cutoff = utc_now() - older_than
        candidates = [
            *await self._metadata_store.list_by_status(DocumentStatus.UPLOADED),
            *await self._metadata_store.list_by_status(DocumentStatus.PROCESSING),
        ]
        marked: list[str] = []
        for record in candidates:
            if self._task_runner.is_running(record.id) or record.updated_at > cutoff:
                continue
            if await self._mark_error(record.id):
                marked.append(record.id)
        if marked:
            self._logger.warning("stale_documents_marked_error", count=len(marked), ids=marked)
        return marked

    async def run_stale_sweep(self, interval_seconds: float, older_than: timedelta) -> None:
        """Run :meth:`reconcile_stale` every *interval_seconds* until cancelled."""
        if interval_seconds <= 0:
            raise PipelineError("Stale sweep interval must be positive")
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.reconcile_stale(older_than)
            except Exception as exc:
                self._logger.error("stale_sweep_failed", error=str(exc), exc_info=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _mark_error(self, document_id: str) -> bool:
        try:
            await self._metadata_store.update(document_id, {"status": DocumentStatus.ERROR})
            return True
        except Exception as exc:
            self._logger.error(
                "document_status_write_failed",
                document_id=document_id,
                status=DocumentStatus.ERROR.value,
                error=str(exc),
            )
            return False

    async def _drop_index_entry(self, document_id: str) -> None:
        try:
            await self._search_index.delete([document_id])
        except Exception as exc:
            self._logger.error(
                "orphan_index_entry_delete_failed",
                document_id=document_id,
                error=str(exc),
            )
            return
        self._logger.info("orphan_index_entry_deleted", document_id=document_id)

    async def _find_blob_url(self, record: DocumentRecord) -> str:
        """Look up the blob URL by exact key when the record has none."""
        owner_prefix = record.blob_name.split("/", 1)[0] + "/"
        for blob in await self._blob_store.list(owner_prefix):
            if blob.key == record.blob_name:
                return blob.url
        return ""
