"""Text extraction adapters: PyMuPDF for PDFs, Tesseract OCR for images."""

from docindex.providers.extraction.pymupdf_provider import PyMuPDFExtractionProvider
from docindex.providers.extraction.tesseract_provider import TesseractExtractionProvider

__all__ = ["PyMuPDFExtractionProvider", "TesseractExtractionProvider"]
