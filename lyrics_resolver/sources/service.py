from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Sequence

from lyrics_resolver.cache.sqlite import LyricsCache
from lyrics_resolver.config import ResolverConfig
from lyrics_resolver.localdb.sqlite import LocalLyricsDatabase
from lyrics_resolver.lrc.model import LyricLine, LyricsCandidate
from lyrics_resolver.matching import fingerprint, score_candidate
from lyrics_resolver.sync.tracker import line_index_at
from lyrics_resolver.sync.wordsync import word_sync_line

from .base import LyricsSource
from .cache import CacheSource
from .local_db import LocalDatabaseSource
from .lrclib import LrcLibClient, LrcLibSource
from .netease import NetEaseClient, NetEaseSource
from .types import TrackQuery

logger = logging.getLogger(__name__)

# Sources whose results were picked (or stored) deliberately skip the score gate.
TRUSTED_SOURCES = ("cache", "localdb")
MIN_SCORE = 800
MIN_SCORE_LOW_TRUST = 200

LogSink = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    candidate: LyricsCandidate
    score: int
    fingerprint: str


def build_sources(cfg: ResolverConfig, cache: LyricsCache) -> list[LyricsSource]:
    """Default chain, in priority order."""
    lrclib = LrcLibClient.from_config(cfg)
    return [
        CacheSource(cache),
        LocalDatabaseSource(LocalLyricsDatabase(cfg.local_db_path)),
        LrcLibSource(lrclib, mode="synced"),
        NetEaseSource(NetEaseClient(timeout_s=cfg.api_timeout_s)),
        LrcLibSource(lrclib, mode="plain"),
    ]


class LyricsService:
    """
    Collects lyrics for the playing track from every source, keeps the
    distinct acceptable ones and selects the best.

    `fetch` blocks on network I/O and is meant to run on a worker thread.
    Everything else is cheap and safe to call from the polling thread while
    a fetch is running. A newer `fetch` (or `force_refetch`) makes any older
    one stop at its next check and drop whatever it still had.
    """

    def __init__(
        self,
        cfg: ResolverConfig,
        *,
        sources: Sequence[LyricsSource] | None = None,
        cache: LyricsCache | None = None,
        on_log: LogSink | None = None,
    ):
        self.cfg = cfg
        self.cache = cache or LyricsCache(cfg.cache_db_path)
        self.sources = list(sources) if sources is not None else build_sources(cfg, self.cache)
        self._on_log = on_log or logger.info

        self._lock = threading.RLock()
        self._generation = 0
        self._title = ""
        self._artist = ""
        self._results: list[ScoredCandidate] = []
        self._selected = 0

    def _log(self, message: str) -> None:
        try:
            self._on_log(message)
        except Exception:
            logger.exception("Log sink failed")

    def update_config(self, **changes) -> ResolverConfig:
        """Swap config values; fetches already running keep the old ones."""
        with self._lock:
            self.cfg = dataclasses.replace(self.cfg, **changes)
            return self.cfg

    # ---- fetching ----

    def _is_current(self, generation: int, query: TrackQuery) -> bool:
        with self._lock:
            return generation == self._generation and query.title == self._title and query.artist == self._artist

    def fetch(self, title: str, artist: str, duration_ms: int = 0, low_trust_title: bool = False) -> bool:
        """
        Run every source for the track, in priority order.

        Returns False when a newer fetch (or force_refetch) took over before
        this one finished; its results are then discarded.
        """
        query = TrackQuery(title=title or "", artist=artist or "", duration_ms=max(0, duration_ms or 0))
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._title = query.title
            self._artist = query.artist
            self._results = []
            self._selected = 0
            cfg = self.cfg

        threshold = MIN_SCORE_LOW_TRUST if low_trust_title else MIN_SCORE
        offline_noted = False

        for src in self.sources:
            if not self._is_current(generation, query):
                return self._cancelled(query)
            if src.online and cfg.offline_mode:
                if not offline_noted:
                    self._log("Offline mode - skipping online sources")
                    offline_noted = True
                continue
            if not src.available(cfg):
                continue

            self._log(f"Trying: {src.name}")
            try:
                candidates = src.provide(query, cfg)
            except Exception:
                logger.exception("Source %s failed for %s", src.name, query.display)
                candidates = []

            if not self._is_current(generation, query):
                return self._cancelled(query)
            if not candidates:
                self._log(f"✗ {src.name} found nothing")
                continue

            for cand in candidates:
                if not self._is_current(generation, query):
                    return self._cancelled(query)
                self._accept(generation, query, cand, threshold)

        with self._lock:
            current = self._is_current(generation, query)
            results = list(self._results)
            selected = results[self._selected] if results else None
        if not current:
            return self._cancelled(query)

        if not results:
            self._log("✗ No lyrics found")
        elif len(results) > 1:
            self._log(f"Found {len(results)} sources - cycle to compare")
        else:
            self._log(f"Found 1 source: {results[0].candidate.label}")

        if selected is not None and selected.candidate.source != "cache":
            self.cache.save(query.artist, query.title, selected.candidate.lines, selected.candidate.source)
        return True

    def _cancelled(self, query: TrackQuery) -> bool:
        self._log(f"Fetch cancelled - song changed ({query.display})")
        return False

    def _accept(self, generation: int, query: TrackQuery, cand: LyricsCandidate, threshold: int) -> bool:
        fp = fingerprint(cand.lines)
        if not fp:
            return False
        score = score_candidate(cand, query)
        if cand.source not in TRUSTED_SOURCES and score < threshold:
            self._log(f"✗ Rejected: {cand.source} (score: {score} < {threshold})")
            return False

        with self._lock:
            if not self._is_current(generation, query):
                return False
            if any(r.fingerprint == fp for r in self._results):
                return False

            self._results.append(ScoredCandidate(candidate=cand, score=score, fingerprint=fp))
            if len(self._results) == 1:
                self._selected = 0
                message = f"✓ Using: {cand.label} (score: {score})"
            else:
                current = self._results[self._selected].score
                if score > current:
                    self._selected = len(self._results) - 1
                    message = f"✓ Better match: {cand.label} (score: {score} > {current})"
                else:
                    message = f"✓ Found alt: {cand.label} (score: {score})"
        # sink runs outside the lock so readers never wait on it
        self._log(message)
        return True

    # ---- session control ----

    def needs_new_song(self, title: str, artist: str) -> bool:
        with self._lock:
            return (title or "").casefold() != self._title.casefold() or (
                artist or ""
            ).casefold() != self._artist.casefold()

    def force_refetch(self) -> None:
        with self._lock:
            self._generation += 1
            self._title = ""
            self._artist = ""
            self._results = []
            self._selected = 0

    def _cycle(self, step: int) -> None:
        with self._lock:
            n = len(self._results)
            if n <= 1:
                return
            self._selected = (self._selected + step) % n
            cand = self._results[self._selected].candidate
            index = self._selected
        self._log(f"Switched to lyrics {index + 1}/{n}: {cand.label}")

    def next_lyrics(self) -> None:
        self._cycle(1)

    def previous_lyrics(self) -> None:
        self._cycle(-1)

    def clear_cache(self, title: str, artist: str) -> None:
        if self.cache.clear(title, artist):
            self._log(f"Cache cleared for {artist} - {title}")

    # ---- read side ----

    @property
    def results(self) -> tuple[ScoredCandidate, ...]:
        with self._lock:
            return tuple(self._results)

    @property
    def current_index(self) -> int:
        with self._lock:
            return self._selected

    @property
    def total_results(self) -> int:
        with self._lock:
            return len(self._results)

    @property
    def has_multiple_results(self) -> bool:
        return self.total_results > 1

    def current_candidate(self) -> LyricsCandidate | None:
        with self._lock:
            if not self._results:
                return None
            return self._results[self._selected].candidate

    def current_lines(self) -> tuple[LyricLine, ...]:
        cand = self.current_candidate()
        return cand.lines if cand is not None else ()

    def current_source_label(self) -> str:
        cand = self.current_candidate()
        return cand.label if cand is not None else "None"

    def current_line(self, position_ms: int) -> str:
        lines = self.current_lines()
        idx = line_index_at(lines, position_ms)
        return lines[idx].text if idx >= 0 else ""

    def current_line_word_sync(self, position_ms: int) -> str:
        with self._lock:
            open_tag, close_tag = self.cfg.highlight_open, self.cfg.highlight_close
        return word_sync_line(self.current_lines(), position_ms, open_tag=open_tag, close_tag=close_tag)

    def song_length(self) -> int:
        lines = self.current_lines()
        return lines[-1].t_ms if lines else 0

    def full_lyrics_text(self) -> str:
        return "\n".join(ln.text for ln in self.current_lines())
