"""Candidate scoring and content fingerprints."""

from __future__ import annotations

import re
from typing import Iterable

from lyrics_resolver.lrc.model import LyricLine, LyricsCandidate
from lyrics_resolver.sources.types import TrackQuery

FINGERPRINT_LINES = 5
FINGERPRINT_SEP = "\x1f"

TITLE_WEIGHT = 1000
ARTIST_WEIGHT = 500
DURATION_WEIGHT = 500
MAX_LINE_BONUS = 100
ESTIMATED_PENALTY = 200
PLAIN_PENALTY = 300

_SOURCE_PRIORITY = {
    "cache": 50,
    "localdb": 40,
    "lrclib (local)": 40,
    "lrclib": 30,
    "netease": 20,
}
_DEFAULT_PRIORITY = 10

_WORD_SPLIT_RE = re.compile(r"[\s\-_()\[\]]+")


def source_priority(source: str) -> int:
    return _SOURCE_PRIORITY.get((source or "").strip().lower(), _DEFAULT_PRIORITY)


def _words(s: str) -> list[str]:
    return [w for w in _WORD_SPLIT_RE.split(s) if w]


def similarity(a: str, b: str) -> float:
    """
    Rough similarity of two titles or artist names in [0, 1].

    Exact match (ignoring case and outer whitespace) is 1.0, containment is
    0.8, otherwise the share of overlapping words.
    """
    a = (a or "").casefold().strip()
    b = (b or "").casefold().strip()
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.8

    words_a = _words(a)
    words_b = _words(b)
    if not words_a or not words_b:
        return 0.0

    matches = sum(1 for wa in words_a if any(wa in wb or wb in wa for wb in words_b))
    return matches / max(len(words_a), len(words_b))


def duration_bonus(candidate: LyricsCandidate, duration_ms: int) -> int:
    last = candidate.last_t_ms
    if duration_ms <= 0 or last <= 0:
        return 0
    return int(DURATION_WEIGHT * min(last, duration_ms) / max(last, duration_ms))


def score_candidate(candidate: LyricsCandidate, query: TrackQuery) -> int:
    score = source_priority(candidate.source)
    score += int(similarity(candidate.title, query.title) * TITLE_WEIGHT)
    score += int(similarity(candidate.artist, query.artist) * ARTIST_WEIGHT)
    score += duration_bonus(candidate, query.duration_ms)
    score += min(len(candidate.lines), MAX_LINE_BONUS)
    if candidate.is_estimated:
        score -= ESTIMATED_PENALTY
    if candidate.is_plain:
        score -= PLAIN_PENALTY
    return score


def fingerprint(lines: Iterable[LyricLine]) -> str:
    """First five non-blank texts, case-folded; empty when there are none."""
    texts: list[str] = []
    for ln in lines:
        t = (ln.text or "").strip()
        if not t:
            continue
        texts.append(t.casefold())
        if len(texts) == FINGERPRINT_LINES:
            break
    return FINGERPRINT_SEP.join(texts)
