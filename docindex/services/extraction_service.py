"""Text extraction routing service.

Holds the configured extraction providers and routes each document to the
first available provider that reads its file extension.  Unlike a
quality-scored fallback chain, a document type has exactly one suitable
engine here; a provider error is final for that document.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from docindex.interfaces.text_extraction_provider import ITextExtractionProvider
from docindex.models.document import ExtractedText
from docindex.utils.errors import ExtractionError
from docindex.utils.logging import get_logger


class TextExtractionService:
    """Routes documents to extraction providers by file extension."""

    def __init__(self, providers: list[ITextExtractionProvider]) -> None:
        self._providers = providers
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(self, data: bytes, file_name: str) -> ExtractedText:
        """Extract text from *data* using the provider for its extension.

        Raises
        ------
        ExtractionError
            If no available provider reads the extension, the provider
            fails, or the document yields no text.
        """
        provider = self._provider_for(file_name)
        self._logger.info(
            "text_extraction_started",
            file_name=file_name,
            provider=provider.get_provider_name(),
        )
        result = await provider.extract(data, file_name)
        if not result.content.strip():
            raise ExtractionError(
                f"No text could be extracted from {file_name}",
                provider_name=provider.get_provider_name(),
            )
        return result

    async def extract_paragraphs(self, data: bytes, file_name: str) -> list[str]:
        """Extract text and return it as a list of paragraphs."""
        result = await self.extract(data, file_name)
        return result.paragraphs or [result.content]

    def get_available_providers(self) -> list[str]:
        """Return the names of providers that are currently available."""
        return [p.get_provider_name() for p in self._providers if p.is_available()]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _provider_for(self, file_name: str) -> ITextExtractionProvider:
        extension = PurePosixPath(file_name).suffix.lower()
        for provider in self._providers:
            if extension not in provider.supported_extensions():
                continue
            if not provider.is_available():
                self._logger.warning(
                    "extraction_provider_unavailable",
                    provider=provider.get_provider_name(),
                    extension=extension,
                )
                continue
            return provider
        raise ExtractionError(f"No text extraction provider for '{extension or file_name}'")
