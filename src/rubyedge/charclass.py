from __future__ import annotations

from enum import Enum

__all__ = [
    "CharClass",
    "classify",
    "needs_reading",
]


class CharClass(Enum):
    IDEOGRAPH = "ideograph"
    SYLLABIC_KANA = "syllabic_kana"
    OTHER = "other"


def _is_ideograph(code: int) -> bool:
    return (
        0x4E00 <= code <= 0x9FFF
        or 0x3400 <= code <= 0x4DBF
        or 0x20000 <= code <= 0x2A6DF
        or 0x2A700 <= code <= 0x2B73F
        or 0x2B740 <= code <= 0x2B81F
        or 0x2B820 <= code <= 0x2CEAF
        or 0x2CEB0 <= code <= 0x2EBEF
        or 0x30000 <= code <= 0x3134F
        or 0xF900 <= code <= 0xFAFF
        or 0x2F800 <= code <= 0x2FA1F
        # 々 and 〆
        or code in (0x3005, 0x3006)
    )


def _is_hiragana(code: int) -> bool:
    # ぁ..ゖ plus the iteration marks ゝゞ and the digraph ゟ
    return 0x3041 <= code <= 0x3096 or 0x309D <= code <= 0x309F


def classify(ch: str) -> CharClass:
    """Classify a single character. Katakana and everything else is OTHER."""
    if len(ch) != 1:
        raise ValueError(f"classify() expects a single character, got {ch!r}")
    code = ord(ch)
    if _is_ideograph(code):
        return CharClass.IDEOGRAPH
    if _is_hiragana(code):
        return CharClass.SYLLABIC_KANA
    return CharClass.OTHER


def needs_reading(ch: str) -> bool:
    return classify(ch) is not CharClass.OTHER
