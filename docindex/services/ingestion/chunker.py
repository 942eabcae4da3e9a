"""Character-window text chunking with overlap and natural boundaries.

Splits extracted text into :class:`TextChunk` windows of at most
``chunk_size`` characters.  Consecutive windows overlap by ``overlap``
characters so that a passage straddling a boundary is whole in at least
one chunk.

Each window ends at the best natural boundary found in its back half, in
this order of preference:

1. a paragraph break (``\\n\\n``)
2. a sentence end (``.``, ``!`` or ``?`` followed by whitespace, not after
   a known abbreviation)
3. any whitespace

and only falls back to a hard cut at ``chunk_size`` when the back half has
none of these.  Chunks are exact slices of the input: ``text[start:end]``.
The function is pure, so the same input always yields the same chunks, and
:func:`reconstruct` recovers the input from them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CHUNK_SIZE = 2300
DEFAULT_OVERLAP_RATIO = 0.25

# Common abbreviations that should NOT count as a sentence end.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "No",
        "Vol",
        "vs",
        "etc",
        "approx",
        "dept",
        "inc",
        "ltd",
        "co",
        "e.g",
        "i.e",
    }
)

_SENTENCE_END_RE = re.compile(r"[.!?][\"')\]]*\s")
_WHITESPACE_RE = re.compile(r"\s")


@dataclass(frozen=True)
class TextChunk:
    """One window of the source text: ``source[start:end] == text``."""

    index: int
    text: str
    start: int
    end: int


class TextChunker:
    """Splits text into overlapping character windows.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 2300).
    overlap_ratio:
        Fraction of ``chunk_size`` repeated at the start of the next chunk
        (default 0.25).  Must be below 0.5 so each chunk advances.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap_ratio: float = DEFAULT_OVERLAP_RATIO,
    ) -> None:
        if chunk_size < 2:
            raise ValueError(f"chunk_size must be at least 2, got {chunk_size}")
        if not 0.0 <= overlap_ratio < 0.5:
            raise ValueError(f"overlap_ratio must be in [0, 0.5), got {overlap_ratio}")
        self._chunk_size = chunk_size
        self._overlap = int(chunk_size * overlap_ratio)

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> list[TextChunk]:
        """Split *text* into overlapping :class:`TextChunk` windows.

        Empty input returns an empty list; input no longer than
        ``chunk_size`` returns a single chunk holding all of it.
        """
        if not text:
            return []

        length = len(text)
        chunks: list[TextChunk] = []
        start = 0
        while True:
            hard_end = min(start + self._chunk_size, length)
            end = length if hard_end == length else self._find_boundary(text, start, hard_end)
            chunks.append(TextChunk(index=len(chunks), text=text[start:end], start=start, end=end))
            if end >= length:
                break
            start = max(end - self._overlap, start + 1)

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            text_length=length,
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks

    def chunk_texts(self, text: str) -> list[str]:
        """Convenience wrapper returning only the chunk strings."""
        return [c.text for c in self.chunk(text)]

    # ------------------------------------------------------------------
    # Boundary search
    # ------------------------------------------------------------------

    def _find_boundary(self, text: str, start: int, hard_end: int) -> int:
        """Return the end offset for the window ``[start, hard_end)``.

        Only the back half of the window is searched so every chunk
        advances by more than the overlap.
        """
        low = start + self._chunk_size // 2

        paragraph = text.rfind("\n\n", low, hard_end)
        if paragraph != -1:
            return paragraph + 2

        sentence_end = self._last_sentence_end(text, low, hard_end)
        if sentence_end is not None:
            return sentence_end

        whitespace = None
        for match in _WHITESPACE_RE.finditer(text, low, hard_end):
            whitespace = match.end()
        if whitespace is not None:
            return whitespace

        return hard_end

    @staticmethod
    def _last_sentence_end(text: str, low: int, high: int) -> int | None:
        """Return the offset just past the last sentence end in ``[low, high)``."""
        best: int | None = None
        for match in _SENTENCE_END_RE.finditer(text, low, high):
            if text[match.start()] == "." and _ends_with_abbreviation(text, match.start()):
                continue
            best = match.end()
        return best


def _ends_with_abbreviation(text: str, period: int) -> bool:
    """Return ``True`` if the word before *period* is a known abbreviation."""
    word_start = period
    while word_start > 0 and (text[word_start - 1].isalpha() or text[word_start - 1] == "."):
        word_start -= 1
    return text[word_start:period] in _ABBREVIATIONS


def reconstruct(chunks: list[TextChunk]) -> str:
    """Rejoin chunks by dropping each chunk's overlap with its predecessor."""
    if not chunks:
        return ""
    parts = [chunks[0].text]
    for previous, current in zip(chunks, chunks[1:]):
        parts.append(current.text[previous.end - current.start :])
    return "".join(parts)
