"""Document lifecycle models for the docindex pipeline.

Defines Pydantic v2 models for the document record kept in the metadata
store, the caller-facing projections of it, and the value objects that
pass between the pipeline and its adapters.  Records are frozen: the
metadata store applies updates by merging into a fresh copy, never by
mutating a loaded instance.

Lifecycle::

    uploaded -> processing -> completed
                           +-> error

A record only leaves ``completed`` or ``error`` by logical deletion.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# DocumentStatus: the processing state machine.
# ---------------------------------------------------------------------------
class DocumentStatus(str, Enum):  # noqa: UP042
    """Processing status of an uploaded document."""

    UPLOADED = "uploaded"       # Bytes stored, record created, continuation queued
    PROCESSING = "processing"   # Continuation picked the document up
    COMPLETED = "completed"     # Indexed and searchable
    ERROR = "error"             # Continuation failed; no retry

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.COMPLETED, DocumentStatus.ERROR)


# ---------------------------------------------------------------------------
# DocumentRecord: the authoritative per-document row.
# ---------------------------------------------------------------------------
class DocumentRecord(BaseModel):
    """One document's metadata as held by the metadata store.

    ``id`` is the join key between the metadata store and the search
    index.  ``search_index_id`` stays ``None`` until the index write
    succeeds, so the delete flow knows whether an index entry exists.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Document id, e.g. doc_1700000000000_k3j9x0a2b.")
    file_name: str = Field(description="Original file name as uploaded.")
    file_type: str = Field(description="MIME content type of the upload.")
    file_size: int = Field(ge=0, description="Upload size in bytes.")
    uploaded_by: str = Field(description="Owner id; also the partition key.")
    uploaded_at: datetime = Field(default_factory=utc_now)
    blob_name: str = Field(description="Key of the raw bytes in the blob store.")
    blob_url: str = Field(default="", description="URL returned by the blob store at upload.")
    search_index_id: str | None = Field(
        default=None,
        description="Id of the search index entry; set only after a successful index write.",
    )
    pages: int = Field(default=0, ge=0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    status: DocumentStatus = DocumentStatus.UPLOADED
    tags: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    description: str | None = None
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class DocumentInfo(BaseModel):
    """Caller-facing projection of a :class:`DocumentRecord`."""

    model_config = ConfigDict(frozen=True)

    id: str
    file_name: str
    file_type: str
    file_size: int
    uploaded_by: str
    uploaded_at: datetime
    status: DocumentStatus
    pages: int = 0
    confidence: float = 0.0
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    description: str | None = None

    @classmethod
    def from_record(cls, record: DocumentRecord) -> DocumentInfo:
        return cls(
            id=record.id,
            file_name=record.file_name,
            file_type=record.file_type,
            file_size=record.file_size,
            uploaded_by=record.uploaded_by,
            uploaded_at=record.uploaded_at,
            status=record.status,
            pages=record.pages,
            confidence=record.confidence,
            categories=list(record.categories),
            tags=list(record.tags),
            description=record.description,
        )


# ---------------------------------------------------------------------------
# Upload / download value objects
# ---------------------------------------------------------------------------
class UploadedFile(BaseModel):
    """Raw upload handed to the pipeline by the API or CLI."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    content_type: str = "application/octet-stream"
    data: bytes
    uploaded_by: str = "anonymous"

    @property
    def size(self) -> int:
        return len(self.data)


class UploadResult(BaseModel):
    """Synchronous outcome of an upload request.

    ``success=True`` means the bytes and the record were written and the
    background continuation was queued, not that processing finished.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    document_id: str | None = None
    message: str
    error: str | None = None


class DownloadResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: bytes
    content_type: str
    file_name: str


class ExtractedText(BaseModel):
    """Text pulled from a document by a text extraction provider.

    ``confidence`` is normalised to [0, 1] whatever scale the underlying
    engine reports.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    pages: int = Field(default=1, ge=0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    paragraphs: list[str] = Field(default_factory=list)
    provider_name: str = ""
    extracted_at: datetime = Field(default_factory=utc_now)


class DocumentStats(BaseModel):
    """Aggregate counts over live (not deleted) documents."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    total_size: int = 0
    index_stats: dict[str, int] | None = None
