from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from lyrics_resolver.lrc.export import export_lrc
from lyrics_resolver.lrc.model import LyricLine
from lyrics_resolver.lrc.parse import parse_timed_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheKey:
    artist: str
    title: str

    @classmethod
    def of(cls, artist: str, title: str) -> "CacheKey":
        return cls(artist=(artist or "").strip().casefold(), title=(title or "").strip().casefold())


class LyricsCache:
    """
    Best-effort store of previously chosen lyrics.

    Every public method swallows storage errors after logging them: a broken
    cache must never break a lyrics lookup.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._ready = False

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(self.db_path)
        con.row_factory = sqlite3.Row
        return con

    def _init_db(self) -> None:
        if self._ready:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS lyrics_cache (
                    artist TEXT NOT NULL,
                    title  TEXT NOT NULL,
                    source TEXT,
                    lrc_text TEXT NOT NULL,
                    updated_at INTEGER NOT NULL,
                    PRIMARY KEY (artist, title)
                );
                """
            )
        self._ready = True

    def try_load(self, artist: str, title: str) -> tuple[LyricLine, ...] | None:
        """Returns cached lines, or None on a miss or a storage error."""
        key = CacheKey.of(artist, title)
        try:
            self._init_db()
            with self._connect() as con:
                row = con.execute(
                    "SELECT lrc_text FROM lyrics_cache WHERE artist=? AND title=?",
                    (key.artist, key.title),
                ).fetchone()
        except (sqlite3.Error, OSError) as e:
            logger.warning("Cache read failed for %s - %s: %s", artist, title, e)
            return None
        if row is None:
            return None
        lines = parse_timed_text(row["lrc_text"] or "")
        return lines or None

    def save(self, artist: str, title: str, lines: Sequence[LyricLine], source: str | None) -> bool:
        if not lines:
            return False
        key = CacheKey.of(artist, title)
        now = int(time.time())
        try:
            self._init_db()
            with self._connect() as con:
                con.execute(
                    """
                    INSERT INTO lyrics_cache(artist, title, source, lrc_text, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(artist, title) DO UPDATE SET
                        source=excluded.source,
                        lrc_text=excluded.lrc_text,
                        updated_at=excluded.updated_at
                    """,
                    (key.artist, key.title, source, export_lrc(lines), now),
                )
        except (sqlite3.Error, OSError) as e:
            logger.warning("Cache write failed for %s - %s: %s", artist, title, e)
            return False
        return True

    def clear(self, title: str, artist: str) -> bool:
        key = CacheKey.of(artist, title)
        try:
            self._init_db()
            with self._connect() as con:
                cur = con.execute(
                    "DELETE FROM lyrics_cache WHERE artist=? AND title=?", (key.artist, key.title)
                )
                return cur.rowcount > 0
        except (sqlite3.Error, OSError) as e:
            logger.warning("Cache clear failed for %s - %s: %s", artist, title, e)
            return False

    def clear_all(self) -> None:
        try:
            self._init_db()
            with self._connect() as con:
                con.execute("DELETE FROM lyrics_cache")
        except (sqlite3.Error, OSError) as e:
            logger.warning("Cache clear failed: %s", e)
