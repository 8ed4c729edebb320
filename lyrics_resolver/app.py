from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from lyrics_resolver.sources.service import LyricsService
from lyrics_resolver.sources.types import TrackQuery
from lyrics_resolver.sync.tracker import LineTracker

logger = logging.getLogger(__name__)


class PlaybackClock:
    """Simulated playback position that advances with wall time."""

    def __init__(self, start_ms: int = 0, rate: float = 1.0, now: Callable[[], float] = time.monotonic):
        self._now = now
        self._origin = now()
        self.start_ms = start_ms
        self.rate = rate

    def position_ms(self) -> int:
        return self.start_ms + int((self._now() - self._origin) * 1000 * self.rate)


def start_fetch(svc: LyricsService, query: TrackQuery, *, low_trust_title: bool = False) -> threading.Thread:
    """Run svc.fetch on a daemon thread so the caller can keep polling."""
    worker = threading.Thread(
        target=svc.fetch,
        args=(query.title, query.artist, query.duration_ms, low_trust_title),
        name="lyrics-fetch",
        daemon=True,
    )
    worker.start()
    return worker


def follow(
    svc: LyricsService,
    query: TrackQuery,
    clock: PlaybackClock,
    emit: Callable[[str], None],
    *,
    word_sync: bool = False,
    until_ms: int | None = None,
    low_trust_title: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> threading.Thread | None:
    """
    Main follow loop:
    (track, position) -> lyrics (background fetch) -> lookup -> emit on change.

    Stops once the position passes `until_ms` (default: track duration, or
    the last lyric line once the fetch is done).
    """
    worker = None
    if svc.needs_new_song(query.title, query.artist):
        worker = start_fetch(svc, query, low_trust_title=low_trust_title)

    tick_s = 1.0 / max(svc.cfg.refresh_hz, 1.0)
    lines = None
    tracker = LineTracker.from_lines(())
    last_text: str | None = None

    while True:
        pos_ms = clock.position_ms() + svc.cfg.offset_ms
        fetching = worker is not None and worker.is_alive()

        # switching candidates (or a finished fetch) swaps the lines
        current = svc.current_lines()
        if current is not lines:
            lines = current
            tracker = LineTracker.from_lines(current)

        if word_sync:
            text = svc.current_line_word_sync(pos_ms) or tracker.current_text(pos_ms)
            if text != last_text:
                last_text = text
                if text:
                    emit(text)
        else:
            idx = tracker.changed_index(pos_ms)
            if idx is not None and idx >= 0:
                emit(tracker.texts[idx])

        end_ms = until_ms or query.duration_ms or (0 if fetching else svc.song_length())
        if not fetching and pos_ms >= end_ms:
            break
        sleep(tick_s)

    if svc.total_results == 0:
        logger.info("No lyrics for %s", query.display)
    return worker
