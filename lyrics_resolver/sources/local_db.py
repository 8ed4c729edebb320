from __future__ import annotations

import logging
import sqlite3

from lyrics_resolver.config import ResolverConfig
from lyrics_resolver.localdb.sqlite import LocalLyricsDatabase, LocalTrack
from lyrics_resolver.lrc.estimate import estimate_timing
from lyrics_resolver.lrc.model import LyricsCandidate
from lyrics_resolver.lrc.parse import parse_timed_text
from lyrics_resolver.text import is_mostly_cjk

from .base import LyricsSource
from .types import TrackQuery

logger = logging.getLogger(__name__)


class LocalDatabaseSource(LyricsSource):
    """Offline lookups against a local lrclib dump."""

    name = "lrclib (local)"

    def __init__(self, db: LocalLyricsDatabase):
        self.db = db

    def available(self, cfg: ResolverConfig) -> bool:
        return self.db.is_available()

    def provide(self, query: TrackQuery, cfg: ResolverConfig) -> list[LyricsCandidate]:
        try:
            tracks = self.db.find_tracks(query.title, query.artist, query.duration_ms)
        except sqlite3.Error as e:
            logger.warning("Local database lookup failed for %s: %s", query.display, e)
            return []

        out: list[LyricsCandidate] = []
        for track in tracks:
            if track.instrumental:
                continue
            cand = self._to_candidate(track, query, cfg)
            if cand is not None:
                out.append(cand)
        return out

    def _to_candidate(self, track: LocalTrack, query: TrackQuery, cfg: ResolverConfig) -> LyricsCandidate | None:
        synced = (track.synced_lyrics or "").strip()
        plain = (track.plain_lyrics or "").strip()

        if synced:
            if cfg.filter_cjk_lyrics and is_mostly_cjk(synced):
                return None
            lines = parse_timed_text(synced)
            estimated = False
        elif plain and cfg.plain_lyrics_fallback:
            if cfg.filter_cjk_lyrics and is_mostly_cjk(plain):
                return None
            duration_ms = query.duration_ms or int((track.duration or 0) * 1000)
            lines = estimate_timing(plain, duration_ms)
            estimated = True
        else:
            return None

        if not lines:
            return None
        return LyricsCandidate(
            lines=lines,
            source=self.name,
            artist=track.artist_name or query.artist,
            title=track.track_name or query.title,
            album=track.album_name,
            is_estimated=estimated,
            is_plain=estimated,
        )
