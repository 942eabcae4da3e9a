"""Unit tests for the TextChunker: overlapping character windows."""

from __future__ import annotations

import pytest

from docindex.services.ingestion.chunker import TextChunker, reconstruct

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_chunker(chunk_size: int = 200, overlap_ratio: float = 0.25) -> TextChunker:
    """Build a TextChunker with a predictable configuration."""
    return TextChunker(chunk_size=chunk_size, overlap_ratio=overlap_ratio)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_defaults(self) -> None:
        chunker = TextChunker()
        assert chunker.chunk_size == 2300
        assert chunker.overlap == 575

    @pytest.mark.parametrize("size", [0, 1, -5])
    def test_rejects_tiny_chunk_size(self, size: int) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=size)

    @pytest.mark.parametrize("ratio", [-0.1, 0.5, 0.9])
    def test_rejects_overlap_ratio_outside_range(self, ratio: float) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=100, overlap_ratio=ratio)


class TestSmallInputs:
    def test_empty_text_returns_no_chunks(self) -> None:
        assert _make_chunker().chunk("") == []

    def test_short_text_returns_single_chunk(self) -> None:
        chunks = _make_chunker(chunk_size=100).chunk("A short note.")
        assert len(chunks) == 1
        assert chunks[0].text == "A short note."
        assert (chunks[0].start, chunks[0].end) == (0, 13)

    def test_text_exactly_chunk_size_is_one_chunk(self) -> None:
        text = "x" * 100
        assert len(_make_chunker(chunk_size=100).chunk(text)) == 1


class TestWindowing:
    def test_every_chunk_within_size(self, sample_text: str) -> None:
        chunker = _make_chunker(chunk_size=150)
        chunks = chunker.chunk(sample_text)

        assert len(chunks) > 1
        for chunk in chunks:
            assert 0 < len(chunk.text) <= 150

    def test_chunks_are_slices_of_source(self, sample_text: str) -> None:
        for chunk in _make_chunker(chunk_size=150).chunk(sample_text):
            assert sample_text[chunk.start : chunk.end] == chunk.text

    def test_consecutive_chunks_overlap_and_advance(self, sample_text: str) -> None:
        chunks = _make_chunker(chunk_size=150, overlap_ratio=0.25).chunk(sample_text)
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start > previous.start
            assert current.start <= previous.end
            assert previous.end - current.start <= 37

    def test_indices_are_sequential(self, sample_text: str) -> None:
        chunks = _make_chunker(chunk_size=150).chunk(sample_text)
        assert [c.index for c in chunks] == list(range(len(chunks)))

    def test_reconstruct_recovers_source(self, sample_text: str) -> None:
        chunks = _make_chunker(chunk_size=120, overlap_ratio=0.3).chunk(sample_text)
        assert reconstruct(chunks) == sample_text

    def test_zero_overlap_chunks_are_contiguous(self, sample_text: str) -> None:
        chunks = _make_chunker(chunk_size=120, overlap_ratio=0.0).chunk(sample_text)
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start == previous.end

    def test_unbroken_text_is_hard_cut(self) -> None:
        text = "a" * 250
        chunks = _make_chunker(chunk_size=100, overlap_ratio=0.0).chunk(text)
        assert [len(c.text) for c in chunks] == [100, 100, 50]

    def test_chunk_count_decreases_with_larger_size(self, sample_text: str) -> None:
        small = _make_chunker(chunk_size=80).chunk(sample_text)
        large = _make_chunker(chunk_size=400).chunk(sample_text)
        assert len(small) > len(large)


class TestBoundaries:
    def test_prefers_paragraph_break(self) -> None:
        text = ("alpha " * 12).strip() + "\n\n" + ("beta " * 30).strip()
        first = _make_chunker(chunk_size=100, overlap_ratio=0.0).chunk(text)[0]
        assert first.text.endswith("\n\n")
        assert "beta" not in first.text

    def test_prefers_sentence_end_over_whitespace(self) -> None:
        text = "One sentence here that runs on for quite a while now. " + "word " * 30
        first = _make_chunker(chunk_size=80, overlap_ratio=0.0).chunk(text)[0]
        assert first.text == "One sentence here that runs on for quite a while now. "

    def test_does_not_break_after_abbreviation(self) -> None:
        text = "The invoice was reviewed by the finance team and Dr. Patel signed " + "x" * 60
        first = _make_chunker(chunk_size=80, overlap_ratio=0.0).chunk(text)[0]
        assert not first.text.endswith("Dr. ")

    def test_chunk_texts_returns_strings(self, sample_text: str) -> None:
        chunker = _make_chunker(chunk_size=150)
        assert chunker.chunk_texts(sample_text) == [c.text for c in chunker.chunk(sample_text)]
