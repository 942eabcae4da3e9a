"""Shared pytest fixtures for the docindex test suite."""

from __future__ import annotations

import hashlib
import math
from pathlib import Path
from typing import Any

import fitz
import pytest

from docindex.interfaces.embedding_provider import IEmbeddingProvider
from docindex.interfaces.text_extraction_provider import ITextExtractionProvider
from docindex.models.document import DocumentRecord, DocumentStatus, ExtractedText
from docindex.providers.blob_store.local_blob_provider import LocalBlobStoreProvider
from docindex.providers.metadata_store.sqlite_metadata_provider import (
    SQLiteMetadataStoreProvider,
)

_EMBEDDING_DIM = 16


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic bag-of-words vector: each lowercase token bumps one bucket.

    Texts sharing words land close together under cosine distance, which is
    enough for ranking assertions.
    """
    vector = [0.0] * dim
    for token in text.lower().split():
        bucket = int(hashlib.sha256(token.encode()).hexdigest(), 16) % dim
        vector[bucket] += 1.0
    norm = math.sqrt(sum(v * v for v in vector)) or 1.0
    return [v / norm for v in vector]


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self, available: bool = True) -> None:
        self._available = available
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return self._available


class StaticExtractionProvider(ITextExtractionProvider):
    """Returns the same text for every file with a supported extension."""

    def __init__(
        self,
        content: str = "Quarterly revenue grew in every region.",
        extensions: frozenset[str] = frozenset({".pdf", ".png"}),
        pages: int = 1,
        confidence: float = 0.9,
        available: bool = True,
    ) -> None:
        self._content = content
        self._extensions = extensions
        self._pages = pages
        self._confidence = confidence
        self._available = available

    async def extract(self, data: bytes, file_name: str) -> ExtractedText:
        return ExtractedText(
            content=self._content,
            pages=self._pages,
            confidence=self._confidence,
            paragraphs=[p for p in self._content.split("\n\n") if p.strip()],
            provider_name=self.get_provider_name(),
        )

    def supported_extensions(self) -> frozenset[str]:
        return self._extensions

    def get_provider_name(self) -> str:
        return "static"

    def is_available(self) -> bool:
        return self._available


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_record(**overrides: Any) -> DocumentRecord:
    """Build a :class:`DocumentRecord` with sensible defaults."""
    defaults: dict[str, Any] = {
        "id": "doc_1700000000000_abc123xyz",
        "file_name": "report.pdf",
        "file_type": "application/pdf",
        "file_size": 1024,
        "uploaded_by": "alice",
        "blob_name": "alice/1700000000000_report.pdf",
        "blob_url": "file:///blobs/alice/1700000000000_report.pdf",
        "status": DocumentStatus.UPLOADED,
    }
    defaults.update(overrides)
    return DocumentRecord(**defaults)


def make_pdf_bytes(pages: list[str]) -> bytes:
    """Render a PDF with one text page per entry in *pages*."""
    doc = fitz.open()
    try:
        for text in pages:
            page = doc.new_page()
            page.insert_text((72, 72), text, fontsize=11)
        return doc.tobytes()
    finally:
        doc.close()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    """Mock IEmbeddingProvider returning deterministic hash-based vectors."""
    return MockEmbeddingProvider()


@pytest.fixture
async def metadata_store(tmp_path: Path) -> SQLiteMetadataStoreProvider:
    """Initialised SQLite metadata store in a temp directory."""
    store = SQLiteMetadataStoreProvider(db_path=tmp_path / "documents.db")
    await store.initialize()
    return store


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStoreProvider:
    """Local blob store rooted in a temp directory."""
    return LocalBlobStoreProvider(root_dir=tmp_path / "blobs")


@pytest.fixture
def sample_text() -> str:
    """Multi-paragraph text for chunker and sanitiser tests."""
    return (
        "Invoices are stored as scanned images and as born-digital PDFs. "
        "Each invoice carries a supplier name, an amount and a due date. "
        "Dr. Patel reviews every invoice above the approval threshold.\n\n"
        "Contracts follow a separate path. They are signed in duplicate, "
        "scanned at the front desk and filed by counterparty. Renewal dates "
        "are tracked in the contract register, which legal reviews monthly.\n\n"
        "Meeting minutes are typed directly into the document system. They "
        "are short, rarely exceed two pages and are searchable the moment "
        "they are saved. Attachments to minutes follow the invoice rules."
    )
