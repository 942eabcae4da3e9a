"""docindex domain models, re-exported for ``from docindex.models import X``.

The models are organised by concern:
    - document.py -- Document records, status lifecycle, upload/download results
    - storage.py  -- Blob store objects and listings
    - search.py   -- Search index documents, results and index statistics
    - chat.py     -- Chat-thread attachments and their chunks
"""

from __future__ import annotations

from docindex.models.chat import (
    ChatChunkMatch,
    ChatDocument,
    ChatDocumentChunk,
    ChatUploadResult,
)
from docindex.models.document import (
    DocumentInfo,
    DocumentRecord,
    DocumentStats,
    DocumentStatus,
    DownloadResult,
    ExtractedText,
    UploadedFile,
    UploadResult,
    utc_now,
)
from docindex.models.search import (
    IndexStats,
    SearchIndexDocument,
    SearchResult,
    SearchResultMetadata,
)
from docindex.models.storage import BlobFile, BlobObject, BlobPutResult

__all__ = [
    "BlobFile",
    "BlobObject",
    "BlobPutResult",
    "ChatChunkMatch",
    "ChatDocument",
    "ChatDocumentChunk",
    "ChatUploadResult",
    "DocumentInfo",
    "DocumentRecord",
    "DocumentStats",
    "DocumentStatus",
    "DownloadResult",
    "ExtractedText",
    "IndexStats",
    "SearchIndexDocument",
    "SearchResult",
    "SearchResultMetadata",
    "UploadResult",
    "UploadedFile",
    "utc_now",
]
