"""Search index models.

:class:`SearchIndexDocument` is what the pipeline writes: one entry per
document, always written whole.  :class:`SearchResult` is what a query
returns, already ranked by the index's native similarity.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Fields that can appear in an equality filter on query().
FILTERABLE_FIELDS: frozenset[str] = frozenset(
    {"file_type", "uploaded_by", "file_name", "pages"}
)


class SearchIndexDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Same id as the metadata record.")
    file_name: str
    content: str
    content_vector: list[float] | None = None
    file_type: str
    file_size: int = 0
    uploaded_by: str
    uploaded_at: datetime
    blob_url: str = ""
    pages: int = 0
    confidence: float = 0.0
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class SearchResultMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_type: str = ""
    uploaded_by: str = ""
    uploaded_at: str = ""
    pages: int = 0
    confidence: float = 0.0


class SearchResult(BaseModel):
    """A ranked hit.

    ``score`` is the index's own similarity (higher is closer) and is
    the only ordering key.  ``highlights`` are content snippets with the
    matched query terms wrapped in ``<em>`` tags.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    file_name: str
    content: str
    score: float
    highlights: list[str] = Field(default_factory=list)
    metadata: SearchResultMetadata = Field(default_factory=SearchResultMetadata)


class IndexStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_count: int = 0
    storage_size: int = 0
