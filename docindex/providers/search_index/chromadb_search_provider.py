"""ChromaDB search index provider adapter.

Wraps ``chromadb.PersistentClient`` to implement
:class:`ISearchIndexProvider`.  One collection holds one entry per
document; the collection is created with cosine-distance HNSW and its
schema (field list and vector dimension) is recorded in the collection
metadata so a restart against a mismatched index fails loudly.

Queries are hybrid: a nearest-neighbour search over all entries plus the
same nearest-neighbour search restricted to entries whose text contains a
query term.  Both halves carry Chroma's own cosine distance, so the union
is ranked on ``1 - distance`` alone.
"""

from __future__ import annotations

import os
import re
from datetime import datetime
from typing import Any

# Chroma's anonymous telemetry is switched off before the client is created.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from docindex.interfaces.embedding_provider import IEmbeddingProvider
from docindex.interfaces.search_index_provider import ISearchIndexProvider
from docindex.models.search import (
    FILTERABLE_FIELDS,
    IndexStats,
    SearchIndexDocument,
    SearchResult,
    SearchResultMetadata,
)
from docindex.utils.errors import SearchIndexError

logger = structlog.get_logger(logger_name=__name__)

# Stored fields, recorded on the collection as its schema.
_SCHEMA_FIELDS = (
    "id",
    "file_name",
    "content",
    "content_vector",
    "file_type",
    "file_size",
    "uploaded_by",
    "uploaded_at",
    "blob_url",
    "pages",
    "confidence",
    "categories",
    "tags",
)

_SNIPPET_RADIUS = 60
_MAX_HIGHLIGHTS = 3
_WORD_RE = re.compile(r"\w+", re.UNICODE)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called.

    Vectors are always computed by our :class:`IEmbeddingProvider` and
    passed explicitly, so Chroma must not load its default ONNX model.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "docindex passes pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


def create_chroma_client(persist_directory: str) -> chromadb.ClientAPI:
    """Open (or create) the on-disk Chroma database with telemetry off."""
    return chromadb.PersistentClient(
        path=persist_directory,
        settings=chromadb.config.Settings(anonymized_telemetry=False),
    )


def open_collection(
    client: chromadb.ClientAPI, name: str, metadata: dict[str, Any]
) -> chromadb.Collection:
    """Open a collection, creating it as a cosine index with *metadata* if missing.

    An existing collection keeps the metadata it was created with, so the
    caller can compare its recorded schema.  A collection persisted with a
    different embedding function refuses the no-op one with ``ValueError``;
    it is then opened with whatever was persisted, which is harmless because
    embeddings are always supplied.
    """
    existing = {getattr(c, "name", c) for c in client.list_collections()}
    if name not in existing:
        return client.create_collection(
            name=name,
            metadata=metadata,
            embedding_function=_NoopEmbeddingFunction(),
        )
    try:
        return client.get_collection(name=name, embedding_function=_NoopEmbeddingFunction())
    except ValueError:
        return client.get_collection(name=name)


class ChromaDBSearchIndexProvider(ISearchIndexProvider):
    """Document search index backed by ChromaDB with local persistence.

    An :class:`IEmbeddingProvider` is injected so query text can be
    embedded before it is handed to Chroma.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        persist_directory: str = "./data/chromadb",
        index_name: str = "documents",
        dimension: int | None = None,
        client: chromadb.ClientAPI | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._index_name = index_name
        self._dimension = dimension or embedding_provider.get_dimension()
        self._client = client or create_chroma_client(persist_directory)
        self._collection: chromadb.Collection | None = None

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def ensure_index_exists(self) -> None:
        """Create the collection if missing and verify its recorded schema."""
        if self._collection is not None:
            return
        try:
            collection = open_collection(
                self._client,
                self._index_name,
                {
                    "hnsw:space": "cosine",
                    "dimension": self._dimension,
                    "schema_fields": ",".join(_SCHEMA_FIELDS),
                },
            )
        except Exception as exc:
            raise SearchIndexError(
                message=f"Could not open index {self._index_name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        recorded = (collection.metadata or {}).get("dimension")
        if recorded is not None and int(recorded) != self._dimension:
            logger.error(
                "search_index_dimension_mismatch",
                index=self._index_name,
                recorded_dim=recorded,
                expected_dim=self._dimension,
            )
            raise SearchIndexError(
                message=(
                    f"Index {self._index_name} was created for {recorded}-dim vectors "
                    f"but the embedding provider produces {self._dimension}-dim vectors"
                ),
                provider_name=self.get_provider_name(),
            )

        self._collection = collection
        logger.info(
            "search_index_ready",
            index=self._index_name,
            dimension=self._dimension,
            documents=collection.count(),
        )

    # ------------------------------------------------------------------
    # ISearchIndexProvider implementation
    # ------------------------------------------------------------------

    async def upsert(self, documents: list[SearchIndexDocument]) -> int:
        """Write whole documents; an existing entry with the same id is replaced."""
        if not documents:
            return 0
        missing = [d.id for d in documents if d.content_vector is None]
        if missing:
            raise SearchIndexError(
                message=f"Documents without an embedding cannot be indexed: {missing}",
                provider_name=self.get_provider_name(),
            )

        collection = await self._get_collection()
        try:
            collection.upsert(
                ids=[d.id for d in documents],
                embeddings=[d.content_vector for d in documents],
                documents=[d.content for d in documents],
                metadatas=[self._document_to_metadata(d) for d in documents],
            )
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("search_index_upsert", index=self._index_name, count=len(documents))
        return len(documents)

    async def delete(self, document_ids: list[str]) -> int:
        if not document_ids:
            return 0
        collection = await self._get_collection()
        try:
            collection.delete(ids=list(document_ids))
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("search_index_delete", index=self._index_name, ids=document_ids)
        return len(document_ids)

    async def query(
        self,
        text: str,
        filters: dict[str, Any] | None = None,
        top: int = 10,
    ) -> list[SearchResult]:
        """Hybrid keyword + vector search ranked by cosine similarity."""
        where_clause = self._translate_filters(filters) if filters is not None else None
        collection = await self._get_collection()

        try:
            total = collection.count()
            if total == 0 or top <= 0:
                return []

            query_embedding = await self._embedding_provider.embed_single(text)
            n_results = min(top, total)
            base_kwargs: dict[str, Any] = {
                "query_embeddings": [query_embedding],
                "n_results": n_results,
                "include": ["documents", "metadatas", "distances"],
            }
            if where_clause:
                base_kwargs["where"] = where_clause

            hits: dict[str, tuple[float, str, dict[str, Any]]] = {}
            self._collect_hits(collection.query(**base_kwargs), hits)

            keyword_clause = self._keyword_clause(text)
            if keyword_clause:
                self._collect_hits(
                    collection.query(**base_kwargs, where_document=keyword_clause), hits
                )

        except SearchIndexError:
            raise
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        terms = self._query_terms(text)
        ranked = sorted(hits.items(), key=lambda item: item[1][0], reverse=True)[:top]
        results = [
            SearchResult(
                id=doc_id,
                file_name=str(meta.get("file_name", "")),
                content=content,
                score=score,
                highlights=self._highlights(content, terms),
                metadata=SearchResultMetadata(
                    file_type=str(meta.get("file_type", "")),
                    uploaded_by=str(meta.get("uploaded_by", "")),
                    uploaded_at=str(meta.get("uploaded_at", "")),
                    pages=int(meta.get("pages", 0)),
                    confidence=float(meta.get("confidence", 0.0)),
                ),
            )
            for doc_id, (score, content, meta) in ranked
        ]

        logger.info(
            "search_index_query",
            query_length=len(text),
            candidates=len(hits),
            results_count=len(results),
            top_score=results[0].score if results else 0.0,
        )
        return results

    async def get_document(self, document_id: str) -> SearchIndexDocument | None:
        collection = await self._get_collection()
        try:
            found = collection.get(
                ids=[document_id], include=["documents", "metadatas", "embeddings"]
            )
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if not found["ids"]:
            return None
        embeddings = found.get("embeddings")
        vector = [float(v) for v in embeddings[0]] if embeddings is not None else None
        return self._metadata_to_document(
            found["ids"][0], found["documents"][0], found["metadatas"][0], vector
        )

    async def count(self) -> IndexStats:
        """Return the entry count; Chroma does not report storage size, so it is 0."""
        collection = await self._get_collection()
        try:
            return IndexStats(document_count=collection.count(), storage_size=0)
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB client answers a heartbeat."""
        try:
            self._client.heartbeat()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_collection(self) -> chromadb.Collection:
        if self._collection is None:
            await self.ensure_index_exists()
        return self._collection

    @staticmethod
    def _collect_hits(
        results: dict[str, Any], hits: dict[str, tuple[float, str, dict[str, Any]]]
    ) -> None:
        ids = results["ids"][0] if results["ids"] else []
        if not ids:
            return
        documents = results["documents"][0]
        metadatas = results["metadatas"][0]
        distances = results["distances"][0]
        for doc_id, content, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            similarity = max(0.0, min(1.0, 1.0 - float(distance)))
            hits[doc_id] = (similarity, content or "", meta or {})

    @staticmethod
    def _query_terms(text: str) -> list[str]:
        seen: dict[str, None] = {}
        for word in _WORD_RE.findall(text):
            if len(word) > 1:
                seen.setdefault(word, None)
        return list(seen)

    @classmethod
    def _keyword_clause(cls, text: str) -> dict[str, Any] | None:
        """Build a ``where_document`` clause matching any query term.

        ``$contains`` is case-sensitive, so each term is matched as typed
        and lowercased.
        """
        variants: dict[str, None] = {}
        for term in cls._query_terms(text):
            variants.setdefault(term, None)
            variants.setdefault(term.lower(), None)
        clauses = [{"$contains": v} for v in variants]
        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$or": clauses}

    @staticmethod
    def _highlights(content: str, terms: list[str]) -> list[str]:
        """Return snippets around term matches with the terms wrapped in ``<em>``."""
        if not terms or not content:
            return []
        pattern = re.compile("|".join(re.escape(t) for t in terms), re.IGNORECASE)
        snippets: list[str] = []
        last_end = -1
        for match in pattern.finditer(content):
            if match.start() < last_end:
                continue
            start = max(0, match.start() - _SNIPPET_RADIUS)
            end = min(len(content), match.end() + _SNIPPET_RADIUS)
            snippets.append(pattern.sub(lambda m: f"<em>{m.group(0)}</em>", content[start:end]))
            last_end = end
            if len(snippets) >= _MAX_HIGHLIGHTS:
                break
        return snippets

    @staticmethod
    def _translate_filters(filters: dict[str, Any]) -> dict[str, Any] | None:
        """Translate an equality filter map to a ChromaDB ``where`` clause.

        Only structured maps over filterable fields are accepted; raw
        filter expressions are rejected rather than passed through.
        """
        if not isinstance(filters, dict):
            raise SearchIndexError(
                message="Search filters must be a field-to-value mapping",
                provider_name="chromadb",
            )
        clauses: list[dict[str, Any]] = []
        for field, value in filters.items():
            if field not in FILTERABLE_FIELDS:
                raise SearchIndexError(
                    message=f"Field {field!r} is not filterable",
                    provider_name="chromadb",
                )
            if not isinstance(value, (str, int, float, bool)):
                raise SearchIndexError(
                    message=f"Filter value for {field!r} must be a scalar",
                    provider_name="chromadb",
                )
            clauses.append({field: value})

        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _document_to_metadata(document: SearchIndexDocument) -> dict[str, str | int | float | bool]:
        """Convert a document to Chroma metadata; lists become comma-separated strings."""
        return {
            "file_name": document.file_name,
            "file_type": document.file_type,
            "file_size": document.file_size,
            "uploaded_by": document.uploaded_by,
            "uploaded_at": document.uploaded_at.isoformat(),
            "blob_url": document.blob_url,
            "pages": document.pages,
            "confidence": document.confidence,
            "categories": ",".join(document.categories),
            "tags": ",".join(document.tags),
        }

    @staticmethod
    def _metadata_to_document(
        doc_id: str, content: str, meta: dict[str, Any], vector: list[float] | None
    ) -> SearchIndexDocument:
        return SearchIndexDocument(
            id=doc_id,
            file_name=str(meta.get("file_name", "")),
            content=content or "",
            content_vector=vector,
            file_type=str(meta.get("file_type", "")),
            file_size=int(meta.get("file_size", 0)),
            uploaded_by=str(meta.get("uploaded_by", "")),
            uploaded_at=datetime.fromisoformat(str(meta["uploaded_at"])),
            blob_url=str(meta.get("blob_url", "")),
            pages=int(meta.get("pages", 0)),
            confidence=float(meta.get("confidence", 0.0)),
            categories=ChromaDBSearchIndexProvider._split_tags(meta.get("categories", "")),
            tags=ChromaDBSearchIndexProvider._split_tags(meta.get("tags", "")),
        )

    @staticmethod
    def _split_tags(value: str | Any) -> list[str]:
        """Split a comma-separated tag string back into a list."""
        if not value or not isinstance(value, str):
            return []
        return [tag.strip() for tag in value.split(",") if tag.strip()]
