from __future__ import annotations

import pytest

from rubyedge.charclass import CharClass, classify, needs_reading


@pytest.mark.parametrize(
    ("ch", "expected"),
    [
        ("漢", CharClass.IDEOGRAPH),
        ("々", CharClass.IDEOGRAPH),
        ("\U0002000b", CharClass.IDEOGRAPH),
        ("ひ", CharClass.SYLLABIC_KANA),
        ("ゞ", CharClass.SYLLABIC_KANA),
        ("カ", CharClass.OTHER),
        ("ー", CharClass.OTHER),
        ("、", CharClass.OTHER),
        ("A", CharClass.OTHER),
        ("<", CharClass.OTHER),
        (" ", CharClass.OTHER),
    ],
)
def test_classify(ch: str, expected: CharClass) -> None:
    assert classify(ch) is expected


def test_katakana_is_never_annotated() -> None:
    assert not any(needs_reading(ch) for ch in "カタカナヴァイオリン")


def test_needs_reading_for_kanji_and_hiragana() -> None:
    assert all(needs_reading(ch) for ch in "日本語がむずかしい")


def test_classify_rejects_multiple_characters() -> None:
    with pytest.raises(ValueError):
        classify("日本")
