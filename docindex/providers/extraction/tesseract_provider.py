"""Tesseract OCR provider for raster image documents.

Wraps pytesseract's ``image_to_data`` to read scanned pages and photos.
Multi-frame images (multi-page TIFF) are read frame by frame, each frame
counting as one page.
"""

from __future__ import annotations

import asyncio
import io
import time

import pytesseract
from PIL import Image, ImageSequence

from docindex.interfaces.text_extraction_provider import ITextExtractionProvider
from docindex.models.document import ExtractedText
from docindex.utils.errors import ExtractionError
from docindex.utils.logging import get_logger

_IMAGE_EXTENSIONS = frozenset(
    {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".gif", ".webp"}
)


class TesseractExtractionProvider(ITextExtractionProvider):
    """OCR provider backed by Google Tesseract via pytesseract.

    Confidence is the mean Tesseract word confidence across all frames,
    scaled from 0-100 to 0-1.
    """

    def __init__(self, lang: str = "eng") -> None:
        self._lang = lang
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # ITextExtractionProvider interface
    # ------------------------------------------------------------------

    async def extract(self, data: bytes, file_name: str) -> ExtractedText:
        start = time.perf_counter()
        try:
            paragraphs, confidences, frames = await asyncio.to_thread(self._ocr_frames, data)
        except Exception as exc:
            self._logger.error(
                "ocr_extraction_failed",
                file_name=file_name,
                error=str(exc),
                processing_time=round(time.perf_counter() - start, 3),
            )
            raise ExtractionError(
                f"Tesseract OCR failed for {file_name}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        confidence = sum(confidences) / len(confidences) / 100.0 if confidences else 0.0
        self._logger.info(
            "ocr_extraction_complete",
            file_name=file_name,
            frames=frames,
            words=len(confidences),
            confidence=round(confidence, 4),
            processing_time=round(time.perf_counter() - start, 3),
        )
        return ExtractedText(
            content="\n\n".join(paragraphs),
            pages=frames or 1,
            confidence=min(1.0, confidence),
            paragraphs=paragraphs,
            provider_name=self.get_provider_name(),
        )

    def supported_extensions(self) -> frozenset[str]:
        return _IMAGE_EXTENSIONS

    def get_provider_name(self) -> str:
        return "tesseract"

    def is_available(self) -> bool:
        """Check that the Tesseract binary is installed."""
        try:
            pytesseract.get_tesseract_version()
            return True
        except pytesseract.TesseractNotFoundError:
            return False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ocr_frames(self, data: bytes) -> tuple[list[str], list[float], int]:
        image = Image.open(io.BytesIO(data))
        paragraphs: list[str] = []
        confidences: list[float] = []
        frames = 0
        for frame in ImageSequence.Iterator(image):
            frames += 1
            frame_paragraphs, frame_confidences = self._run_tesseract(frame.convert("RGB"))
            paragraphs.extend(frame_paragraphs)
            confidences.extend(frame_confidences)
        return paragraphs, confidences, frames

    def _run_tesseract(self, image: Image.Image) -> tuple[list[str], list[float]]:
        """Run Tesseract on one frame; return its paragraphs and word confidences.

        Words are grouped into paragraphs by Tesseract's (block, paragraph)
        numbering.  Entries with confidence -1 are layout rows, not words.
        """
        data = pytesseract.image_to_data(
            image, lang=self._lang, output_type=pytesseract.Output.DICT
        )

        paragraphs: list[str] = []
        confidences: list[float] = []
        current: list[str] = []
        current_key: tuple[int, int] | None = None

        for i in range(len(data["text"])):
            word = data["text"][i].strip()
            conf = float(data["conf"][i])
            if not word or conf < 0:
                continue
            key = (data["block_num"][i], data["par_num"][i])
            if current and key != current_key:
                paragraphs.append(" ".join(current))
                current = []
            current_key = key
            current.append(word)
            confidences.append(conf)

        if current:
            paragraphs.append(" ".join(current))
        return paragraphs, confidences
