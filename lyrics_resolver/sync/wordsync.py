"""
Per-word highlight timing reconstructed from line-level timestamps.

Only the start of the current line and the start of the next one are known.
The gap between them is shared among the line's tokens by how many letters
each has, with per-token bounds, short pauses after punctuation and a cap on
how much of a long gap is treated as singing.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import accumulate
from typing import Sequence

from lyrics_resolver.lrc.model import LyricLine
from lyrics_resolver.text import has_cjk, is_cjk_char

from .tracker import line_index_at

LONG_PAUSE_THRESHOLD_MS = 2000
SPOKEN_PORTION_CAP = 0.75
MIN_WORD_MS = 120
MAX_WORD_MS = 500

COMMA_PAUSE_MS = 150
MID_PAUSE_MS = 180
FULL_STOP_PAUSE_MS = 250

MIN_SCALE = 0.2

DEFAULT_OPEN_TAG = "<color=yellow>"
DEFAULT_CLOSE_TAG = "</color>"


def tokenize_for_word_sync(text: str) -> list[str]:
    """
    Space-separated words, except that every CJK character is a token of
    its own. Non-CJK runs (romaji, punctuation) inside CJK text stay whole.
    """
    if not text:
        return []
    if not has_cjk(text):
        return [w for w in text.split(" ") if w]

    tokens: list[str] = []
    pending: list[str] = []
    for ch in text:
        if ch.isspace():
            if pending:
                tokens.append("".join(pending))
                pending.clear()
        elif is_cjk_char(ch):
            if pending:
                tokens.append("".join(pending))
                pending.clear()
            tokens.append(ch)
        else:
            pending.append(ch)
    if pending:
        tokens.append("".join(pending))
    return tokens


def token_weight(token: str) -> int:
    return max(1, sum(1 for ch in token if ch.isalnum()))


def pause_after(token: str) -> int:
    if not token:
        return 0
    last = token[-1]
    if last == ",":
        return COMMA_PAUSE_MS
    if last in ";:":
        return MID_PAUSE_MS
    if last in ".!?":
        return FULL_STOP_PAUSE_MS
    return 0


def content_window(interval_ms: int, token_count: int) -> float:
    """How much of the gap to the next line is spent on the words themselves."""
    if interval_ms < LONG_PAUSE_THRESHOLD_MS:
        return float(interval_ms)
    window = min(interval_ms * SPOKEN_PORTION_CAP, token_count * MAX_WORD_MS)
    return max(window, min(interval_ms, token_count * MIN_WORD_MS))


@dataclass(frozen=True, slots=True)
class WordTimeline:
    tokens: tuple[str, ...]
    # Two boundaries per token: end of its highlight, end of its trailing pause.
    boundaries: tuple[float, ...]

    @property
    def total_ms(self) -> float:
        return self.boundaries[-1] if self.boundaries else 0.0

    def active_token(self, elapsed_ms: float) -> int | None:
        if elapsed_ms < 0 or elapsed_ms >= self.total_ms:
            return None
        seg = next(i for i, end in enumerate(self.boundaries) if end >= elapsed_ms)
        # Highlight and trailing pause both belong to the same token.
        return min(seg // 2, len(self.tokens) - 1)


def build_timeline(text: str, interval_ms: int) -> WordTimeline | None:
    tokens = tokenize_for_word_sync(text)
    if not tokens or interval_ms <= 0:
        return None

    weights = [token_weight(t) for t in tokens]
    total_weight = max(1, sum(weights))
    window = content_window(interval_ms, len(tokens))

    durations = [min(max(window * w / total_weight, MIN_WORD_MS), MAX_WORD_MS) for w in weights]
    pauses = [pause_after(t) for t in tokens]

    base_sum = sum(durations)
    pause_sum = sum(pauses)
    if base_sum + pause_sum > window and base_sum > 0:
        scale = min(max((window - pause_sum) / base_sum, MIN_SCALE), 1.0)
        durations = [d * scale for d in durations]

    steps: list[float] = []
    for d, p in zip(durations, pauses):
        steps += [d, p]
    return WordTimeline(tokens=tuple(tokens), boundaries=tuple(accumulate(steps)))


def word_sync_line(
    lines: Sequence[LyricLine],
    position_ms: int,
    *,
    open_tag: str = DEFAULT_OPEN_TAG,
    close_tag: str = DEFAULT_CLOSE_TAG,
) -> str:
    """
    The current line with the word being sung wrapped in open_tag/close_tag.

    Empty when there is no current line, no next line to time against, or
    the words of the line are already over.
    """
    idx = line_index_at(lines, position_ms)
    if idx < 0 or idx >= len(lines) - 1:
        return ""

    current = lines[idx]
    interval = lines[idx + 1].t_ms - current.t_ms
    timeline = build_timeline(current.text, interval)
    if timeline is None:
        return ""

    active = timeline.active_token(position_ms - current.t_ms)
    if active is None:
        return ""

    return " ".join(
        f"{open_tag}{tok}{close_tag}" if i == active else tok for i, tok in enumerate(timeline.tokens)
    )
