from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .charclass import needs_reading

__all__ = [
    "Segment",
    "readings_needed",
    "segment_document",
]

TAG_OPEN = "<"
TAG_CLOSE = ">"


@dataclass(frozen=True, slots=True)
class Segment:
    content: str
    needs_reading: bool = False


@dataclass(slots=True)
class _ScanState:
    buffer: list[str] = field(default_factory=list)
    needs_reading: bool = False
    in_tag: bool = False


def _flush(state: _ScanState, segments: list[Segment]) -> None:
    if not state.buffer:
        return
    segments.append(Segment(content="".join(state.buffer), needs_reading=state.needs_reading))
    state.buffer.clear()


def _step(state: _ScanState, ch: str, segments: list[Segment]) -> None:
    if state.in_tag:
        # Everything up to the closing bracket is opaque markup.
        state.buffer.append(ch)
        if ch == TAG_CLOSE:
            state.in_tag = False
        return
    if ch == TAG_OPEN:
        if state.needs_reading:
            _flush(state, segments)
            state.needs_reading = False
        state.in_tag = True
        state.buffer.append(ch)
        return
    flag = needs_reading(ch)
    if flag != state.needs_reading:
        _flush(state, segments)
        state.needs_reading = flag
    state.buffer.append(ch)


def segment_document(text: str) -> list[Segment]:
    """
    Partition decoded document text into alternating plain / needs-reading runs.

    Markup between ``<`` and ``>`` is never inspected; it is folded into the
    surrounding plain run. Inside text nodes each maximal run of kanji/hiragana
    becomes its own segment. Joining the ``content`` of the result reproduces
    ``text`` exactly. An unterminated ``<`` swallows the rest of the document
    as plain text.
    """
    segments: list[Segment] = []
    state = _ScanState()
    for ch in text:
        _step(state, ch, segments)
    _flush(state, segments)
    return segments


def readings_needed(segments: Iterable[Segment]) -> list[str]:
    return [segment.content for segment in segments if segment.needs_reading]
