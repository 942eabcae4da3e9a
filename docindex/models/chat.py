"""Models for documents attached to a chat thread.

Chat uploads are chunked rather than indexed whole; each chunk becomes a
:class:`ChatDocumentChunk` in the chunk index, and the upload itself is
recorded as a :class:`ChatDocument` against the thread.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from docindex.models.document import utc_now


class ChatDocumentChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    chat_thread_id: str
    user: str
    page_content: str
    metadata: str = Field(default="", description="Source file name.")
    chat_type: str = "data"
    dept_name: str = ""
    embedding: list[float] | None = None


class ChatDocument(BaseModel):
    """A file attached to a chat thread."""

    model_config = ConfigDict(frozen=True)

    id: str
    chat_thread_id: str
    user_id: str
    name: str
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utc_now)


class ChatChunkMatch(BaseModel):
    """A chunk returned from a similarity search, with its similarity score."""

    model_config = ConfigDict(frozen=True)

    chunk: ChatDocumentChunk
    score: float


class ChatUploadResult(BaseModel):
    """Outcome of reading a chat attachment: its chunks, or the reason it was refused."""

    model_config = ConfigDict(frozen=True)

    success: bool
    chunks: list[str] = Field(default_factory=list)
    error: str | None = None
