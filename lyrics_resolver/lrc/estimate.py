from __future__ import annotations

import re

from .model import LyricLine

START_BUFFER_RATIO = 0.05
END_BUFFER_RATIO = 0.10
MIN_BUDGET_MS = 1000
MIN_LINE_MS = 1500
MAX_LINE_MS = 8000
GAP_MS = 200
TAIL_GUARD_MS = 500

_SECTION_WORDS = (
    "pre-chorus",
    "prechorus",
    "verse",
    "chorus",
    "bridge",
    "intro",
    "outro",
    "hook",
    "refrain",
    "interlude",
    "instrumental",
    "solo",
    "breakdown",
)
# "Chorus", "Verse 2: Jay-Z", "Chorus x2", "Bridge:", "Intro - spoken"
_SECTION_RE = re.compile(
    r"^(?:" + "|".join(re.escape(w) for w in _SECTION_WORDS) + r")(?:\s|\d|:|$)",
    re.IGNORECASE,
)


def is_section_marker(line: str) -> bool:
    s = line.strip()
    if not s:
        return True
    if s.startswith("["):
        if s.endswith("]"):
            return True
        lower = s.lower()
        if any(w in lower for w in _SECTION_WORDS):
            return True
    return bool(_SECTION_RE.match(s))


def plain_lines(plain: str) -> list[str]:
    return [ln.strip() for ln in (plain or "").splitlines() if ln.strip() and not is_section_marker(ln)]


def estimate_timing(plain: str, duration_ms: int) -> tuple[LyricLine, ...]:
    """
    Spread untimed lyric lines over a song.

    Lines get time proportional to their length, clamped per line, with a
    small gap in between. A start buffer (5%) and an end buffer (10%) are
    kept free unless the song is too short for that.
    """
    texts = plain_lines(plain)
    if not texts:
        return ()

    char_counts = [max(1, len(t)) for t in texts]
    total_chars = sum(char_counts)

    start_buffer = int(duration_ms * START_BUFFER_RATIO)
    end_buffer = int(duration_ms * END_BUFFER_RATIO)
    budget = duration_ms - start_buffer - end_buffer
    if budget < MIN_BUDGET_MS:
        budget = duration_ms

    out: list[LyricLine] = []
    clock = start_buffer
    for text, chars in zip(texts, char_counts):
        if clock > duration_ms - TAIL_GUARD_MS:
            break
        out.append(LyricLine(t_ms=clock, text=text))
        line_ms = int(budget * chars / total_chars)
        line_ms = min(max(line_ms, MIN_LINE_MS), MAX_LINE_MS)
        clock += line_ms + GAP_MS

    return tuple(out)
