"""Chat attachment ingestion: read -> chunk -> sanitise -> embed -> store.

Files attached to a chat thread take a different path from managed
documents.  They are processed synchronously within the request, split
into overlapping chunks by :class:`TextChunker`, and each chunk is stored
in the chunk index tagged with its thread and user so the chat can
retrieve passages by similarity later.

Chunks whose text fails sanitisation are still kept in the chunk list but
carry no embedding and are not written to the index.  Vectors are aligned
to the chunks they belong to by :class:`EmbeddingAligner`.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog

from docindex.interfaces.chunk_index_provider import IChunkIndexProvider
from docindex.interfaces.embedding_provider import IEmbeddingProvider
from docindex.interfaces.metadata_store_provider import IMetadataStoreProvider
from docindex.models.chat import ChatChunkMatch, ChatDocument, ChatDocumentChunk, ChatUploadResult
from docindex.models.document import UploadedFile
from docindex.services.extraction_service import TextExtractionService
from docindex.services.ingestion.chunker import TextChunker
from docindex.services.ingestion.embedding_aligner import EmbeddingAligner
from docindex.services.ingestion.sanitizer import as_text_content, sanitize_content
from docindex.services.validation import ContentValidator
from docindex.utils.errors import DocIndexError

logger = structlog.get_logger(logger_name=__name__)


class ChatDocumentIngestionService:
    """Turns chat attachments into searchable, thread-scoped chunks.

    Parameters
    ----------
    validator:
        Content policy for chat uploads (20 MB, extra image types).
    extraction_service:
        Routes the file to the PDF or OCR extractor.
    chunker:
        Splits the extracted text into overlapping windows.
    embedding_aligner:
        Embeds the valid chunks and realigns the vectors.
    embedding_provider:
        Embeds similarity-search queries.
    chunk_index:
        Stores chunks and answers similarity searches per thread.
    metadata_store:
        Records which files are attached to which thread.
    """

    def __init__(
        self,
        validator: ContentValidator,
        extraction_service: TextExtractionService,
        chunker: TextChunker,
        embedding_aligner: EmbeddingAligner,
        embedding_provider: IEmbeddingProvider,
        chunk_index: IChunkIndexProvider,
        metadata_store: IMetadataStoreProvider,
    ) -> None:
        self._validator = validator
        self._extraction_service = extraction_service
        self._chunker = chunker
        self._embedding_aligner = embedding_aligner
        self._embedding_provider = embedding_provider
        self._chunk_index = chunk_index
        self._metadata_store = metadata_store

    @property
    def max_upload_bytes(self) -> int:
        return self._validator.policy.max_bytes

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def load_file(self, upload: UploadedFile) -> list[str]:
        """Validate the attachment and return its paragraphs.

        Raises
        ------
        docindex.utils.errors.ValidationError
            If the file type or size is not allowed.
        docindex.utils.errors.ExtractionError
            If no text can be read from the file.
        """
        self._validator.validate_or_raise(upload.file_name, upload.size)
        return await self._extraction_service.extract_paragraphs(upload.data, upload.file_name)

    async def upload_document(self, upload: UploadedFile) -> ChatUploadResult:
        """Read an attachment and split it into chunks.

        Paragraphs are joined with single newlines before chunking.
        Failures are returned in the result rather than raised.
        """
        try:
            paragraphs = await self.load_file(upload)
        except DocIndexError as exc:
            logger.warning("chat_upload_failed", file_name=upload.file_name, error=str(exc))
            return ChatUploadResult(success=False, error=exc.message)

        chunks = self._chunker.chunk_texts("\n".join(paragraphs))
        logger.info("chat_upload_chunked", file_name=upload.file_name, chunks=len(chunks))
        return ChatUploadResult(success=True, chunks=chunks)

    async def index_documents(
        self,
        file_name: str,
        docs: list[Any],
        chat_thread_id: str,
        user: str,
    ) -> list[ChatDocumentChunk]:
        """Embed and store chunks for a thread, then record the attachment.

        Each element of *docs* may be a string, a list of segments or a
        structured value; it is normalised to text once.  Returns every
        chunk built, embedded or not.
        """
        contents = [as_text_content(doc).to_text() for doc in docs]
        aligned = await self._embedding_aligner.embed_aligned(contents)

        chunks = [
            ChatDocumentChunk(
                id=uuid.uuid4().hex,
                chat_thread_id=chat_thread_id,
                user=user,
                page_content=content,
                metadata=file_name,
                embedding=vector,
            )
            for content, vector in zip(contents, aligned.vectors, strict=True)
        ]
        written = await self._chunk_index.upsert_chunks(chunks)
        await self._metadata_store.record_chat_document(
            ChatDocument(
                id=uuid.uuid4().hex,
                chat_thread_id=chat_thread_id,
                user_id=user,
                name=file_name,
            )
        )
        logger.info(
            "chat_document_indexed",
            chat_thread_id=chat_thread_id,
            file_name=file_name,
            chunks=len(chunks),
            indexed=written,
            skipped=len(aligned.skipped),
        )
        return chunks

    async def ingest(self, upload: UploadedFile, chat_thread_id: str) -> ChatUploadResult:
        """Read, chunk and index an attachment in one call."""
        result = await self.upload_document(upload)
        if not result.success:
            return result
        await self.index_documents(
            upload.file_name, list(result.chunks), chat_thread_id, upload.uploaded_by
        )
        return result

    async def find_chat_documents(self, chat_thread_id: str) -> list[ChatDocument]:
        return await self._metadata_store.list_chat_documents(chat_thread_id)

    async def delete_thread_documents(self, chat_thread_id: str) -> int:
        """Remove a thread's chunks from the index and its attachment records."""
        deleted_chunks = await self._chunk_index.delete_by_thread(chat_thread_id)
        deleted_docs = await self._metadata_store.delete_chat_documents(chat_thread_id)
        logger.info(
            "chat_thread_documents_deleted",
            chat_thread_id=chat_thread_id,
            chunks=deleted_chunks,
            documents=deleted_docs,
        )
        return deleted_chunks

    async def similarity_search(
        self,
        query: str,
        k: int,
        chat_thread_id: str,
        user: str | None = None,
    ) -> list[ChatChunkMatch]:
        """Return the *k* chunks of a thread closest to *query*.

        Blank queries and queries containing control characters return
        an empty list.
        """
        text = sanitize_content(query)
        if text is None:
            return []
        vector = await self._embedding_provider.embed_single(text)
        return await self._chunk_index.similarity_search(vector, k, chat_thread_id, user)
