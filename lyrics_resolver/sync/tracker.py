from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Sequence

from lyrics_resolver.lrc.model import LyricLine


def line_index_at(lines: Sequence[LyricLine], now_ms: int) -> int:
    """Index of the last line starting at or before now_ms, -1 if none."""
    return bisect_right(lines, now_ms, key=lambda ln: ln.t_ms) - 1


@dataclass(slots=True)
class LineTracker:
    """
    Efficient lookup: O(log n) via bisect + update only on change.
    """

    t_ms: list[int]
    texts: list[str]
    last_idx: int = -1

    @classmethod
    def from_lines(cls, lines: Sequence[LyricLine]) -> "LineTracker":
        t_ms = [ln.t_ms for ln in lines]
        texts = [ln.text for ln in lines]
        return cls(t_ms=t_ms, texts=texts)

    def current_index(self, now_ms: int) -> int:
        i = bisect_right(self.t_ms, now_ms) - 1
        return i if i >= 0 else -1

    def current_text(self, now_ms: int) -> str:
        i = self.current_index(now_ms)
        return self.texts[i] if i >= 0 else ""

    def changed_index(self, now_ms: int) -> int | None:
        i = self.current_index(now_ms)
        if i != self.last_idx:
            self.last_idx = i
            return i
        return None
