from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LyricLine:
    t_ms: int
    text: str


@dataclass(frozen=True, slots=True)
class LrcDocument:
    lines: tuple[LyricLine, ...]
    offset_ms: int = 0
    tags: dict[str, str] | None = None


@dataclass(frozen=True, slots=True)
class LyricsCandidate:
    """One set of lyrics produced by a source, before or after acceptance."""

    lines: tuple[LyricLine, ...]
    source: str
    artist: str = ""
    title: str = ""
    album: str = ""
    is_estimated: bool = False
    is_plain: bool = False

    @property
    def label(self) -> str:
        if self.is_estimated:
            return f"{self.source} (estimated)"
        if self.is_plain:
            return f"{self.source} (plain)"
        return self.source

    @property
    def last_t_ms(self) -> int:
        return self.lines[-1].t_ms if self.lines else 0
