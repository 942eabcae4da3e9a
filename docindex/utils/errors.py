"""Custom exception hierarchy for docindex.

All application exceptions inherit from :class:`DocIndexError`, which
carries an optional ``provider_name`` so error handlers can identify which
backing store or external service (e.g. "sqlite", "chromadb", "openai")
caused the failure.

The hierarchy is organized by where the failure happens:

    DocIndexError  (base -- catch-all for any docindex error)
    +-- ValidationError          (upload rejected before any write)
    +-- NotFoundError            (record absent or logically deleted)
    +-- AdapterError             (any backing-store / external call failure)
    |   +-- BlobStoreError
    |   +-- MetadataStoreError
    |   +-- ExtractionError
    |   +-- EmbeddingError
    |   +-- SearchIndexError
    +-- PipelineError            (orchestration / status transitions)
    +-- ConfigurationError       (startup / missing config)

Validation and not-found errors are surfaced to the caller as-is.  Adapter
errors raised inside the background continuation become ``status=error``
on the document record; raised in the request path they become a generic
failure result.
"""


class DocIndexError(Exception):
    """Base exception for all docindex errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.  The
    ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[chromadb] Index query failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller-facing errors
# ---------------------------------------------------------------------------

class ValidationError(DocIndexError):
    """Raised when an upload fails the content policy (type or size).

    ``code`` distinguishes the two rejection kinds so the API layer can
    report them separately: ``"unsupported_type"`` or ``"file_too_large"``.
    """

    def __init__(
        self,
        message: str = "Upload rejected",
        provider_name: str | None = None,
        code: str = "invalid",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._code = code

    @property
    def code(self) -> str:
        return self._code


class NotFoundError(DocIndexError):
    """Raised when a document id does not resolve to a live record."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Adapter errors (one per backing store / external service)
# ---------------------------------------------------------------------------

class AdapterError(DocIndexError):
    """Raised when a call to a backing store or external service fails."""

    def __init__(
        self,
        message: str = "Backend operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class BlobStoreError(AdapterError):
    """Raised when reading, writing or deleting raw file bytes fails."""

    def __init__(
        self,
        message: str = "Blob store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class MetadataStoreError(AdapterError):
    """Raised when the document record store fails."""

    def __init__(
        self,
        message: str = "Metadata store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(AdapterError):
    """Raised when text extraction fails or yields no text."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(AdapterError):
    """Raised when an embedding call fails or returns a misaligned batch."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SearchIndexError(AdapterError):
    """Raised when a search-index bootstrap, write or query fails."""

    def __init__(
        self,
        message: str = "Search index operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(DocIndexError):
    """Raised when pipeline orchestration fails (invalid state transition, etc.)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(DocIndexError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
