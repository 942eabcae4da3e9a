"""Unit tests for DocumentIngestionPipeline: upload and background processing."""

from __future__ import annotations

import re
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from docindex.interfaces.blob_store_provider import IBlobStoreProvider
from docindex.interfaces.metadata_store_provider import IMetadataStoreProvider
from docindex.interfaces.search_index_provider import ISearchIndexProvider
from docindex.models.document import DocumentRecord, DocumentStatus, UploadedFile, utc_now
from docindex.models.storage import BlobFile, BlobPutResult
from docindex.pipeline.orchestrator import (
    UPLOAD_ACCEPTED_MESSAGE,
    DocumentIngestionPipeline,
    blob_key_for,
    new_document_id,
)
from docindex.pipeline.task_runner import BackgroundTaskRunner
from docindex.services.extraction_service import TextExtractionService
from docindex.services.ingestion.embedding_aligner import EmbeddingAligner
from docindex.services.validation import (
    DOCUMENT_UPLOAD_POLICY,
    FILE_TOO_LARGE,
    UNSUPPORTED_TYPE,
    ContentValidator,
)
from docindex.utils.errors import (
    BlobStoreError,
    NotFoundError,
    PipelineError,
    SearchIndexError,
)
from tests.conftest import MockEmbeddingProvider, StaticExtractionProvider, make_record

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_metadata_store(record: DocumentRecord | None = None) -> MagicMock:
    """Metadata store mock whose ``update`` merges into the given record."""
    store = MagicMock(spec=IMetadataStoreProvider)
    store.create = AsyncMock(side_effect=lambda r: r.id)
    current = {"record": record}

    async def _update(document_id: str, updates: dict) -> DocumentRecord:
        base = current["record"] or make_record(id=document_id)
        merged = base.model_copy(update=updates)
        current["record"] = merged
        return merged

    store.update = AsyncMock(side_effect=_update)
    store.list_by_status = AsyncMock(return_value=[])
    return store


def _make_blob_store() -> MagicMock:
    blob_store = MagicMock(spec=IBlobStoreProvider)
    blob_store.put = AsyncMock(
        side_effect=lambda key, data, content_type, metadata=None: BlobPutResult(
            key=key, url=f"file:///blobs/{key}"
        )
    )
    return blob_store


def _make_pipeline(
    *,
    validator: ContentValidator | None = None,
    blob_store: MagicMock | None = None,
    metadata_store: MagicMock | None = None,
    search_index: MagicMock | None = None,
    extraction: StaticExtractionProvider | None = None,
    embedding: MockEmbeddingProvider | None = None,
    task_runner: BackgroundTaskRunner | None = None,
) -> DocumentIngestionPipeline:
    if blob_store is None:
        blob_store = _make_blob_store()
    if search_index is None:
        search_index = MagicMock(spec=ISearchIndexProvider)
        search_index.upsert = AsyncMock(return_value=1)
    return DocumentIngestionPipeline(
        validator=validator or ContentValidator(),
        blob_store=blob_store,
        metadata_store=metadata_store or _make_metadata_store(),
        extraction_service=TextExtractionService([extraction or StaticExtractionProvider()]),
        embedding_aligner=EmbeddingAligner(embedding or MockEmbeddingProvider()),
        search_index=search_index,
        task_runner=task_runner or BackgroundTaskRunner(),
    )


def _upload(name: str = "report.pdf", data: bytes = b"%PDF-1.4 test") -> UploadedFile:
    return UploadedFile(
        file_name=name, content_type="application/pdf", data=data, uploaded_by="alice"
    )


def _statuses(metadata_store: MagicMock) -> list[DocumentStatus]:
    return [
        call.args[1]["status"]
        for call in metadata_store.update.await_args_list
        if "status" in call.args[1]
    ]


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------


class TestIdentifiers:
    def test_document_id_format(self) -> None:
        assert re.fullmatch(r"doc_\d{13}_[a-z0-9]{9}", new_document_id())

    def test_document_ids_are_unique(self) -> None:
        assert len({new_document_id() for _ in range(200)}) == 200

    def test_blob_key_layout(self) -> None:
        assert blob_key_for("alice", "report.pdf", timestamp_ms=1700000000000) == (
            "alice/1700000000000_report.pdf"
        )

    def test_blob_key_strips_path_separators(self) -> None:
        key = blob_key_for("a/b", "../../etc/passwd", timestamp_ms=1)
        assert key == "a_b/1_passwd"
        assert key.count("/") == 1


# ---------------------------------------------------------------------------
# Upload (request part)
# ---------------------------------------------------------------------------


class TestUpload:
    @pytest.mark.asyncio
    async def test_accepted_upload_writes_blob_and_record(self) -> None:
        metadata_store = _make_metadata_store()
        pipeline = _make_pipeline(metadata_store=metadata_store)

        result = await pipeline.upload(_upload())

        assert result.success
        assert result.message == UPLOAD_ACCEPTED_MESSAGE
        assert result.document_id is not None

        created: DocumentRecord = metadata_store.create.await_args.args[0]
        assert created.id == result.document_id
        assert created.status is DocumentStatus.UPLOADED
        assert created.blob_name.startswith("alice/")
        assert created.blob_url == f"file:///blobs/{created.blob_name}"
        assert created.file_size == len(b"%PDF-1.4 test")
        await pipeline.task_runner.drain()

    @pytest.mark.asyncio
    async def test_blob_metadata_carries_original_name(self) -> None:
        blob_store = _make_blob_store()
        pipeline = _make_pipeline(blob_store=blob_store)

        await pipeline.upload(_upload(name="Q3 report.pdf"))
        await pipeline.task_runner.drain()

        metadata = blob_store.put.await_args.kwargs["metadata"]
        assert metadata["originalName"] == "Q3 report.pdf"
        assert metadata["uploadedBy"] == "alice"
        assert metadata["fileSize"] == str(len(b"%PDF-1.4 test"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("name", "data", "code"),
        [
            ("notes.txt", b"text", UNSUPPORTED_TYPE),
            ("huge.pdf", b"x" * 11, FILE_TOO_LARGE),
        ],
    )
    async def test_rejected_upload_touches_no_store(self, name: str, data: bytes, code: str) -> None:
        metadata_store = _make_metadata_store()
        search_index = MagicMock(spec=ISearchIndexProvider)
        blob_store = MagicMock(spec=IBlobStoreProvider)
        task_runner = MagicMock(spec=BackgroundTaskRunner)
        pipeline = _make_pipeline(
            blob_store=blob_store,
            metadata_store=metadata_store,
            search_index=search_index,
            task_runner=task_runner,
            validator=ContentValidator(DOCUMENT_UPLOAD_POLICY.with_max_bytes(10)),
        )

        result = await pipeline.upload(_upload(name=name, data=data))

        assert not result.success
        assert result.error == code
        assert result.document_id is None
        assert blob_store.mock_calls == []
        assert metadata_store.create.await_count == 0
        assert metadata_store.update.await_count == 0
        assert search_index.mock_calls == []
        task_runner.submit.assert_not_called()

    @pytest.mark.asyncio
    async def test_blob_failure_returns_generic_failure(self) -> None:
        blob_store = MagicMock(spec=IBlobStoreProvider)
        blob_store.put = AsyncMock(side_effect=BlobStoreError("disk full", provider_name="local"))
        metadata_store = _make_metadata_store()
        task_runner = MagicMock(spec=BackgroundTaskRunner)
        pipeline = _make_pipeline(
            blob_store=blob_store, metadata_store=metadata_store, task_runner=task_runner
        )

        result = await pipeline.upload(_upload())

        assert not result.success
        assert result.message == "Upload failed"
        assert "disk full" in result.error
        metadata_store.create.assert_not_awaited()
        task_runner.submit.assert_not_called()


# ---------------------------------------------------------------------------
# Continuation
# ---------------------------------------------------------------------------


class TestProcessDocument:
    @pytest.mark.asyncio
    async def test_happy_path_transitions(self) -> None:
        metadata_store = _make_metadata_store()
        search_index = MagicMock(spec=ISearchIndexProvider)
        search_index.upsert = AsyncMock(return_value=1)
        pipeline = _make_pipeline(
            metadata_store=metadata_store,
            search_index=search_index,
            extraction=StaticExtractionProvider(pages=3, confidence=0.75),
        )

        result = await pipeline.upload(_upload())
        await pipeline.task_runner.drain()

        assert _statuses(metadata_store) == [DocumentStatus.PROCESSING, DocumentStatus.COMPLETED]
        final_updates = metadata_store.update.await_args_list[-1].args[1]
        assert final_updates["pages"] == 3
        assert final_updates["confidence"] == 0.75
        assert final_updates["search_index_id"] == result.document_id

        indexed = search_index.upsert.await_args.args[0][0]
        assert indexed.id == result.document_id
        assert indexed.content == "Quarterly revenue grew in every region."
        assert indexed.content_vector is not None
        assert indexed.blob_url.startswith("file:///blobs/alice/")

    @pytest.mark.asyncio
    async def test_extraction_failure_marks_error(self) -> None:
        metadata_store = _make_metadata_store()
        search_index = MagicMock(spec=ISearchIndexProvider)
        pipeline = _make_pipeline(
            metadata_store=metadata_store,
            search_index=search_index,
            extraction=StaticExtractionProvider(content="   "),
        )

        await pipeline.upload(_upload())
        await pipeline.task_runner.drain()

        assert _statuses(metadata_store) == [DocumentStatus.PROCESSING, DocumentStatus.ERROR]
        search_index.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_control_characters_mark_error_without_embedding(self) -> None:
        embedding = MockEmbeddingProvider()
        metadata_store = _make_metadata_store()
        pipeline = _make_pipeline(
            metadata_store=metadata_store,
            embedding=embedding,
            extraction=StaticExtractionProvider(content="scan\x00garbage"),
        )

        await pipeline.upload(_upload())
        await pipeline.task_runner.drain()

        assert _statuses(metadata_store)[-1] is DocumentStatus.ERROR
        assert embedding.calls == []

    @pytest.mark.asyncio
    async def test_index_failure_leaves_search_index_id_unset(self) -> None:
        metadata_store = _make_metadata_store()
        search_index = MagicMock(spec=ISearchIndexProvider)
        search_index.upsert = AsyncMock(side_effect=SearchIndexError("index down"))
        pipeline = _make_pipeline(metadata_store=metadata_store, search_index=search_index)

        await pipeline.upload(_upload())
        await pipeline.task_runner.drain()

        assert _statuses(metadata_store) == [DocumentStatus.PROCESSING, DocumentStatus.ERROR]
        for call in metadata_store.update.await_args_list:
            assert "search_index_id" not in call.args[1]

    @pytest.mark.asyncio
    async def test_deleted_during_processing_removes_index_entry(self) -> None:
        metadata_store = _make_metadata_store()
        processing_update = metadata_store.update.side_effect

        async def _update(document_id: str, updates: dict) -> DocumentRecord:
            if updates.get("status") is DocumentStatus.COMPLETED:
                raise NotFoundError(f"Document {document_id} not found")
            return await processing_update(document_id, updates)

        metadata_store.update = AsyncMock(side_effect=_update)
        search_index = MagicMock(spec=ISearchIndexProvider)
        search_index.upsert = AsyncMock(return_value=1)
        search_index.delete = AsyncMock(return_value=1)
        pipeline = _make_pipeline(metadata_store=metadata_store, search_index=search_index)

        result = await pipeline.upload(_upload())
        await pipeline.task_runner.drain()

        search_index.delete.assert_awaited_once_with([result.document_id])
        assert DocumentStatus.ERROR not in _statuses(metadata_store)
        assert pipeline.task_runner.stats()["failed"] == 0

    @pytest.mark.asyncio
    async def test_orphan_index_delete_failure_is_logged_not_raised(self) -> None:
        metadata_store = _make_metadata_store()
        processing_update = metadata_store.update.side_effect

        async def _update(document_id: str, updates: dict) -> DocumentRecord:
            if updates.get("status") is DocumentStatus.COMPLETED:
                raise NotFoundError(f"Document {document_id} not found")
            return await processing_update(document_id, updates)

        metadata_store.update = AsyncMock(side_effect=_update)
        search_index = MagicMock(spec=ISearchIndexProvider)
        search_index.upsert = AsyncMock(return_value=1)
        search_index.delete = AsyncMock(side_effect=SearchIndexError("index down"))
        pipeline = _make_pipeline(metadata_store=metadata_store, search_index=search_index)

        await pipeline.upload(_upload())
        await pipeline.task_runner.drain()

        search_index.delete.assert_awaited_once()
        assert pipeline.task_runner.stats()["failed"] == 0

    @pytest.mark.asyncio
    async def test_status_write_failure_is_swallowed(self) -> None:
        metadata_store = _make_metadata_store()
        metadata_store.update = AsyncMock(side_effect=RuntimeError("db locked"))
        task_runner = BackgroundTaskRunner()
        pipeline = _make_pipeline(metadata_store=metadata_store, task_runner=task_runner)

        await pipeline.upload(_upload())
        await task_runner.drain()

        assert task_runner.stats()["failed"] == 0
        assert metadata_store.update.await_count == 2

    @pytest.mark.asyncio
    async def test_missing_blob_url_is_looked_up_by_key(self) -> None:
        record = make_record(blob_url="")
        metadata_store = _make_metadata_store(record)
        blob_store = MagicMock(spec=IBlobStoreProvider)
        blob_store.list = AsyncMock(
            return_value=[
                BlobFile(
                    key="alice/other.pdf", name="other.pdf", url="u1", size=1,
                    content_type="application/pdf", last_modified=utc_now(),
                ),
                BlobFile(
                    key=record.blob_name, name="report.pdf", url="https://blobs/report",
                    size=1, content_type="application/pdf", last_modified=utc_now(),
                ),
            ]
        )
        search_index = MagicMock(spec=ISearchIndexProvider)
        search_index.upsert = AsyncMock(return_value=1)
        pipeline = _make_pipeline(
            blob_store=blob_store, metadata_store=metadata_store, search_index=search_index
        )

        await pipeline.process_document(record.id, _upload())

        blob_store.list.assert_awaited_once_with("alice/")
        assert search_index.upsert.await_args.args[0][0].blob_url == "https://blobs/report"


# ---------------------------------------------------------------------------
# Stale-record sweep
# ---------------------------------------------------------------------------


class TestReconcileStale:
    @pytest.mark.asyncio
    async def test_marks_old_records_error(self) -> None:
        old = make_record(id="old", updated_at=utc_now() - timedelta(hours=2))
        fresh = make_record(id="fresh", status=DocumentStatus.PROCESSING)
        metadata_store = _make_metadata_store()
        metadata_store.list_by_status = AsyncMock(
            side_effect=lambda status: [old] if status is DocumentStatus.UPLOADED else [fresh]
        )
        pipeline = _make_pipeline(metadata_store=metadata_store)

        marked = await pipeline.reconcile_stale(timedelta(hours=1))

        assert marked == ["old"]
        metadata_store.update.assert_awaited_once_with("old", {"status": DocumentStatus.ERROR})

    @pytest.mark.asyncio
    async def test_skips_records_still_running(self) -> None:
        old = make_record(id="busy", updated_at=utc_now() - timedelta(hours=2))
        metadata_store = _make_metadata_store()
        metadata_store.list_by_status = AsyncMock(
            side_effect=lambda status: [old] if status is DocumentStatus.UPLOADED else []
        )
        task_runner = MagicMock(spec=BackgroundTaskRunner)
        task_runner.is_running.return_value = True
        pipeline = _make_pipeline(metadata_store=metadata_store, task_runner=task_runner)

        assert await pipeline.reconcile_stale(timedelta(hours=1)) == []
        metadata_store.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sweep_rejects_non_positive_interval(self) -> None:
        pipeline = _make_pipeline()
        with pytest.raises(PipelineError):
            await pipeline.run_stale_sweep(0, timedelta(hours=1))
