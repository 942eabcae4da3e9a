"""ChromaDB chunk index for chat thread attachments.

Stores one entry per chunk in its own collection, tagged with the chat
thread and user.  Shares the on-disk Chroma database with the document
search index.
"""

from __future__ import annotations

from typing import Any

import chromadb
import structlog

from docindex.interfaces.chunk_index_provider import IChunkIndexProvider
from docindex.models.chat import ChatChunkMatch, ChatDocumentChunk
from docindex.providers.search_index.chromadb_search_provider import (
    create_chroma_client,
    open_collection,
)
from docindex.utils.errors import SearchIndexError

logger = structlog.get_logger(logger_name=__name__)


class ChromaDBChunkIndexProvider(IChunkIndexProvider):
    """Per-thread chunk storage with cosine similarity search."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        index_name: str = "chat_documents",
        dimension: int = 1536,
        client: chromadb.ClientAPI | None = None,
    ) -> None:
        self._index_name = index_name
        self._dimension = dimension
        self._client = client or create_chroma_client(persist_directory)
        self._collection: chromadb.Collection | None = None

    async def ensure_index_exists(self) -> None:
        """Create the collection if missing and check its recorded dimension."""
        if self._collection is not None:
            return
        try:
            collection = open_collection(
                self._client,
                self._index_name,
                {"hnsw:space": "cosine", "dimension": self._dimension},
            )
        except Exception as exc:
            raise SearchIndexError(
                message=f"Could not open chunk index {self._index_name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        recorded = (collection.metadata or {}).get("dimension")
        if recorded is not None and int(recorded) != self._dimension:
            logger.error(
                "chunk_index_dimension_mismatch",
                index=self._index_name,
                recorded_dim=recorded,
                expected_dim=self._dimension,
            )
            raise SearchIndexError(
                message=(
                    f"Chunk index {self._index_name} holds {recorded}-dim vectors "
                    f"but {self._dimension}-dim vectors were requested"
                ),
                provider_name=self.get_provider_name(),
            )

        self._collection = collection
        logger.info("chunk_index_ready", index=self._index_name, dimension=self._dimension)

    async def upsert_chunks(self, chunks: list[ChatDocumentChunk]) -> int:
        """Write the chunks that have an embedding; the rest are skipped."""
        embedded = [c for c in chunks if c.embedding is not None]
        if not embedded:
            return 0
        collection = await self._get_collection()
        try:
            collection.upsert(
                ids=[c.id for c in embedded],
                embeddings=[c.embedding for c in embedded],
                documents=[c.page_content for c in embedded],
                metadatas=[self._chunk_to_metadata(c) for c in embedded],
            )
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB chunk upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info(
            "chunk_index_upsert",
            count=len(embedded),
            skipped=len(chunks) - len(embedded),
        )
        return len(embedded)

    async def delete_by_thread(self, chat_thread_id: str) -> int:
        collection = await self._get_collection()
        try:
            existing = collection.get(where={"chat_thread_id": chat_thread_id}, include=[])
            ids = existing["ids"] or []
            if ids:
                collection.delete(ids=ids)
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB chunk delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chunk_index_delete_thread", chat_thread_id=chat_thread_id, deleted=len(ids))
        return len(ids)

    async def similarity_search(
        self,
        query_vector: list[float],
        k: int,
        chat_thread_id: str,
        user: str | None = None,
    ) -> list[ChatChunkMatch]:
        collection = await self._get_collection()
        where: dict[str, Any] = {"chat_thread_id": chat_thread_id}
        if user is not None:
            where = {"$and": [where, {"user": user}]}
        try:
            total = collection.count()
            if total == 0 or k <= 0:
                return []
            results = collection.query(
                query_embeddings=[query_vector],
                n_results=min(k, total),
                where=where,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise SearchIndexError(
                message=f"ChromaDB chunk query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = results["ids"][0] if results["ids"] else []
        matches = [
            ChatChunkMatch(
                chunk=self._metadata_to_chunk(chunk_id, content, meta),
                score=max(0.0, min(1.0, 1.0 - float(distance))),
            )
            for chunk_id, content, meta, distance in zip(
                ids,
                results["documents"][0] if ids else [],
                results["metadatas"][0] if ids else [],
                results["distances"][0] if ids else [],
                strict=True,
            )
        ]
        return sorted(matches, key=lambda m: m.score, reverse=True)

    def get_provider_name(self) -> str:
        return "chromadb_chunks"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_collection(self) -> chromadb.Collection:
        if self._collection is None:
            await self.ensure_index_exists()
        return self._collection

    @staticmethod
    def _chunk_to_metadata(chunk: ChatDocumentChunk) -> dict[str, str]:
        return {
            "chat_thread_id": chunk.chat_thread_id,
            "user": chunk.user,
            "metadata": chunk.metadata,
            "chat_type": chunk.chat_type,
            "dept_name": chunk.dept_name,
        }

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, content: str, meta: dict[str, Any]) -> ChatDocumentChunk:
        return ChatDocumentChunk(
            id=chunk_id,
            chat_thread_id=str(meta.get("chat_thread_id", "")),
            user=str(meta.get("user", "")),
            page_content=content or "",
            metadata=str(meta.get("metadata", "")),
            chat_type=str(meta.get("chat_type", "data")),
            dept_name=str(meta.get("dept_name", "")),
        )
