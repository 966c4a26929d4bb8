from __future__ import annotations

import pytest

from rubyedge.errors import AlignmentMismatch
from rubyedge.ruby import reassemble
from rubyedge.segmenter import Segment, segment_document


def test_single_run_document() -> None:
    segments = segment_document("日本語が難しいですよ")
    assert reassemble(segments, ["にほんごがむずかしいですよ"]) == (
        "<ruby><rb>日本語が難しいですよ</rb><rt>にほんごがむずかしいですよ</rt></ruby>"
    )


def test_markup_around_run_is_kept_verbatim() -> None:
    segments = segment_document("<p>Hello 日本 World</p>")
    assert reassemble(segments, ["にほん"]) == (
        "<p>Hello <ruby><rb>日本</rb><rt>にほん</rt></ruby> World</p>"
    )


def test_readings_pair_positionally() -> None:
    segments = [
        Segment("東京", True),
        Segment("・"),
        Segment("大阪", True),
        Segment("・"),
        Segment("京都", True),
    ]
    result = reassemble(segments, ["とうきょう", "おおさか", "きょうと"])
    assert result == (
        "<ruby><rb>東京</rb><rt>とうきょう</rt></ruby>・"
        "<ruby><rb>大阪</rb><rt>おおさか</rt></ruby>・"
        "<ruby><rb>京都</rb><rt>きょうと</rt></ruby>"
    )


def test_plain_document_with_no_readings() -> None:
    segments = segment_document("<p>Hello</p>")
    assert reassemble(segments, []) == "<p>Hello</p>"


@pytest.mark.parametrize("readings", [[], ["いち"], ["いち", "に", "さん"]])
def test_count_mismatch_raises(readings: list[str]) -> None:
    segments = [Segment("一", True), Segment(" "), Segment("二", True)]
    with pytest.raises(AlignmentMismatch) as excinfo:
        reassemble(segments, readings)
    assert excinfo.value.expected == 2
    assert excinfo.value.actual == len(readings)
