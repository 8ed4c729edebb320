"""
Read-only access to an offline copy of the lrclib.net database dump.

Only the two tables the lookup needs are touched:
  tracks(id, name_lower, artist_name_lower, name, artist_name, album_name, duration, last_lyrics_id)
  lyrics(id, track_id, synced_lyrics, plain_lyrics, instrumental)
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Local matches further than this from the playing track are ignored.
MAX_DURATION_DIFF_S = 10.0


@dataclass(frozen=True, slots=True)
class LocalTrack:
    track_name: str
    artist_name: str
    album_name: str
    duration: float | None
    instrumental: bool
    synced_lyrics: str | None
    plain_lyrics: str | None


class LocalLyricsDatabase:
    def __init__(self, db_path: Path | None):
        self.db_path = db_path
        self._available: bool | None = None

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(f"file:{self.db_path}?mode=ro", uri=True)
        con.row_factory = sqlite3.Row
        return con

    def is_available(self) -> bool:
        if self._available is not None:
            return self._available
        self._available = False
        if self.db_path is None or not self.db_path.is_file():
            return False
        try:
            with self._connect() as con:
                row = con.execute(
                    "SELECT COUNT(*) AS n FROM sqlite_master WHERE type='table' AND name IN ('tracks', 'lyrics')"
                ).fetchone()
            self._available = row is not None and row["n"] == 2
        except sqlite3.Error as e:
            logger.warning("Local lyrics database %s unusable: %s", self.db_path, e)
        if self._available:
            logger.info("Local lyrics database ready: %s", self.db_path)
        return self._available

    def find_tracks(self, title: str, artist: str, duration_ms: int = 0) -> list[LocalTrack]:
        """
        Tracks matching title and artist (case-insensitive), closest duration first.
        Raises sqlite3.Error on storage problems.
        """
        params: list[object] = [(title or "").strip().casefold(), (artist or "").strip().casefold()]
        sql = """
            SELECT t.name, t.artist_name, t.album_name, t.duration,
                   l.synced_lyrics, l.plain_lyrics, l.instrumental
            FROM tracks t
            JOIN lyrics l ON l.id = t.last_lyrics_id
            WHERE t.name_lower = ? AND t.artist_name_lower = ?
        """
        if duration_ms > 0:
            target_s = duration_ms / 1000.0
            sql += " AND ABS(t.duration - ?) <= ? ORDER BY ABS(t.duration - ?)"
            params += [target_s, MAX_DURATION_DIFF_S, target_s]

        with self._connect() as con:
            rows = con.execute(sql, params).fetchall()

        return [
            LocalTrack(
                track_name=row["name"] or "",
                artist_name=row["artist_name"] or "",
                album_name=row["album_name"] or "",
                duration=row["duration"],
                instrumental=bool(row["instrumental"]),
                synced_lyrics=row["synced_lyrics"],
                plain_lyrics=row["plain_lyrics"],
            )
            for row in rows
        ]
