"""Content normalisation and sanitisation ahead of embedding.

Raw content reaches the pipeline in several shapes: plain strings from the
PDF and OCR extractors, lists of paragraphs, and occasionally structured
values (dicts from key/value extraction).  :func:`as_text_content`
classifies a raw value once into the :data:`TextContent` union, and every
later stage works with that instead of re-checking types.

:func:`sanitize_content` then decides whether the text can be embedded.
Content is rejected, not repaired, when it is blank after trimming or
contains ASCII control characters other than tab, newline and carriage
return.  A rejection is a skip, never an error.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Union

# C0 controls except \t \n \r, plus DEL.
CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


@dataclass(frozen=True)
class PlainText:
    text: str

    def to_text(self) -> str:
        return self.text


@dataclass(frozen=True)
class TextSegments:
    """An ordered sequence of pieces, joined with single spaces."""

    segments: tuple[Any, ...]

    def to_text(self) -> str:
        return " ".join(_piece_to_text(s) for s in self.segments)


@dataclass(frozen=True)
class StructuredText:
    """A mapping or other structured value, rendered as JSON."""

    value: Any

    def to_text(self) -> str:
        return json.dumps(self.value, ensure_ascii=False, default=str)


TextContent = Union[PlainText, TextSegments, StructuredText]


def as_text_content(value: Any) -> TextContent:
    """Classify a raw value into the :data:`TextContent` union."""
    if isinstance(value, (PlainText, TextSegments, StructuredText)):
        return value
    if value is None:
        return PlainText("")
    if isinstance(value, str):
        return PlainText(value)
    if isinstance(value, (bytes, bytearray)):
        return PlainText(bytes(value).decode("utf-8", errors="replace"))
    if isinstance(value, (list, tuple)):
        return TextSegments(tuple(value))
    if isinstance(value, dict):
        return StructuredText(value)
    return PlainText(str(value))


def _piece_to_text(piece: Any) -> str:
    return as_text_content(piece).to_text()


def sanitize_content(value: Any) -> str | None:
    """Return embeddable text for *value*, or ``None`` if it must be skipped.

    Steps: coerce to text, trim, reject empty, reject control characters.
    """
    text = as_text_content(value).to_text().strip()
    if not text:
        return None
    if CONTROL_CHAR_RE.search(text):
        return None
    return text


def is_embeddable(value: Any) -> bool:
    return sanitize_content(value) is not None
