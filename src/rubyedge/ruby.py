from __future__ import annotations

from io import StringIO
from typing import Sequence

from .errors import AlignmentMismatch
from .segmenter import Segment

__all__ = [
    "reassemble",
    "ruby_markup",
]


def ruby_markup(base: str, reading: str) -> str:
    return f"<ruby><rb>{base}</rb><rt>{reading}</rt></ruby>"


def reassemble(segments: Sequence[Segment], readings: Sequence[str]) -> str:
    """
    Rebuild the document, wrapping each needs-reading segment with its reading.

    Readings are consumed positionally. The count is checked before anything is
    written so a mismatch never yields a truncated document.
    """
    expected = sum(1 for segment in segments if segment.needs_reading)
    if expected != len(readings):
        raise AlignmentMismatch(expected, len(readings))

    out = StringIO()
    cursor = 0
    for segment in segments:
        if segment.needs_reading:
            out.write(ruby_markup(segment.content, readings[cursor]))
            cursor += 1
        else:
            out.write(segment.content)
    if cursor != len(readings):  # pragma: no cover - guarded by the count check
        raise AlignmentMismatch(cursor, len(readings))
    return out.getvalue()
