from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TrackQuery:
    title: str
    artist: str
    duration_ms: int = 0

    @property
    def display(self) -> str:
        if self.artist and self.title:
            return f"{self.artist} - {self.title}"
        return self.title or self.artist or "Unknown track"


@dataclass(frozen=True, slots=True)
class SearchResult:
    """Track descriptor returned by the lrclib search endpoint."""
    id: int | None
    track_name: str
    artist_name: str
    album_name: str
    duration: float | None
    instrumental: bool
    synced_lyrics: str | None = None
    plain_lyrics: str | None = None


@dataclass(frozen=True, slots=True)
class LyricsPayload:
    """Lyric bodies of a single lrclib record."""
    synced_lyrics: str | None = None
    plain_lyrics: str | None = None
