"""Abstract base class for text extraction providers.

A provider turns raw document bytes into plain text plus a page count and a
confidence in [0, 1].  Implementations exist for PDFs with a text layer
(PyMuPDF) and for raster images (Tesseract OCR).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docindex.models.document import ExtractedText


# Concrete implementations:
#   PyMuPDFExtractionProvider   : PDF text layer, page by page
#   TesseractExtractionProvider : OCR for jpg/png/bmp/tiff/gif/webp
# Routed by file extension in docindex/services/extraction_service.py
class ITextExtractionProvider(ABC):
    """Contract for document-to-text extraction."""

    @abstractmethod
    async def extract(self, data: bytes, file_name: str) -> ExtractedText:
        """Extract text from *data*.

        Parameters
        ----------
        data:
            Raw document bytes.
        file_name:
            Original file name; used as a format hint only.

        Returns
        -------
        ExtractedText
            Content with paragraphs separated by blank lines, the page
            count, and a normalised confidence.

        Raises
        ------
        docindex.utils.errors.ExtractionError
            If the document cannot be read.
        """

    @abstractmethod
    def supported_extensions(self) -> frozenset[str]:
        """Return the lowercase file extensions (with dot) this provider reads."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the underlying engine is installed and usable."""
