from __future__ import annotations

import logging

from lyrics_resolver.cache.sqlite import LyricsCache
from lyrics_resolver.config import ResolverConfig
from lyrics_resolver.lrc.model import LyricsCandidate

from .base import LyricsSource
from .types import TrackQuery

logger = logging.getLogger(__name__)


class CacheSource(LyricsSource):
    name = "cache"

    def __init__(self, cache: LyricsCache):
        self.cache = cache

    def provide(self, query: TrackQuery, cfg: ResolverConfig) -> list[LyricsCandidate]:
        lines = self.cache.try_load(query.artist, query.title)
        if not lines:
            return []
        logger.debug("Cache hit for %s (%d lines)", query.display, len(lines))
        return [LyricsCandidate(lines=lines, source=self.name, artist=query.artist, title=query.title)]
