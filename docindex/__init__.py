"""docindex: document ingestion, text extraction and hybrid search."""

__version__ = "0.1.0"
