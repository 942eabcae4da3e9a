"""Pydantic request/response schemas for the docindex API.

Request schemas end with ``Request``, response schemas with ``Response``.
Domain models that are already caller-facing (:class:`DocumentInfo`,
:class:`SearchResult`) are embedded directly rather than mirrored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from docindex.models.chat import ChatChunkMatch, ChatDocument
from docindex.models.document import DocumentInfo
from docindex.models.search import SearchResult


class UploadResponse(BaseModel):
    """Outcome of a document upload; ``success`` means accepted for processing."""

    success: bool
    document_id: str | None = None
    message: str
    error: str | None = None


class DocumentListResponse(BaseModel):
    documents: list[DocumentInfo]
    total: int


class DeleteResponse(BaseModel):
    success: bool
    document_id: str


class SearchRequest(BaseModel):
    query: str = Field(..., max_length=2000)
    filters: dict[str, Any] | None = Field(
        default=None,
        description='Equality filters, e.g. {"file_type": "application/pdf"}.',
    )
    top: int = Field(default=10, ge=1, le=100)


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResult]
    total: int


class StatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    total_size: int
    index_stats: dict[str, int] | None = None


class UpdateTagsRequest(BaseModel):
    tags: list[str] = Field(default_factory=list)


class UpdateCategoriesRequest(BaseModel):
    categories: list[str] = Field(default_factory=list)


class UpdateDescriptionRequest(BaseModel):
    description: str | None = Field(default=None, max_length=5000)


class ChatUploadResponse(BaseModel):
    success: bool
    chat_thread_id: str
    chunks: int = 0
    error: str | None = None


class ChatDocumentsResponse(BaseModel):
    chat_thread_id: str
    documents: list[ChatDocument]


class ChatSearchRequest(BaseModel):
    query: str = Field(..., max_length=2000)
    k: int = Field(default=10, ge=1, le=50)


class ChatSearchResponse(BaseModel):
    chat_thread_id: str
    matches: list[ChatChunkMatch]


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
