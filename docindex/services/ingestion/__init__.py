"""Text preparation for indexing.

1. **Sanitise** (sanitizer.py) -- Coerce extractor output to plain text and
   reject content an embedding request would fail on.
2. **Chunk** (chunker.py / TextChunker) -- Split chat attachments into
   overlapping character windows that break on paragraph and sentence
   boundaries where possible.
3. **Embed** (embedding_aligner.py / EmbeddingAligner) -- Embed only the
   valid contents and put each vector back at its original position.

ChatDocumentIngestionService runs all three for chat-thread attachments.
"""

from docindex.services.ingestion.chat_ingestion_service import ChatDocumentIngestionService
from docindex.services.ingestion.chunker import TextChunker
from docindex.services.ingestion.embedding_aligner import EmbeddingAligner

__all__ = [
    "ChatDocumentIngestionService",
    "EmbeddingAligner",
    "TextChunker",
]
