from __future__ import annotations

_CJK_RANGES = (
    (0x4E00, 0x9FFF),  # CJK Unified Ideographs
    (0x3040, 0x309F),  # Hiragana
    (0x30A0, 0x30FF),  # Katakana
    (0xAC00, 0xD7AF),  # Hangul syllables
)

CJK_MAJORITY_RATIO = 0.3


def is_cjk_char(ch: str) -> bool:
    cp = ord(ch)
    return any(lo <= cp <= hi for lo, hi in _CJK_RANGES)


def has_cjk(text: str) -> bool:
    return any(is_cjk_char(ch) for ch in text or "")


def is_mostly_cjk(text: str) -> bool:
    """
    True when more than 30% of the alphanumeric or non-ASCII characters
    of `text` are Chinese, Japanese kana or Hangul.
    """
    total = 0
    cjk = 0
    for ch in text or "":
        if ch.isalnum() or ord(ch) > 127:
            total += 1
            if is_cjk_char(ch):
                cjk += 1
    return total > 0 and cjk / total > CJK_MAJORITY_RATIO
