from __future__ import annotations

import logging
import time
from typing import Any, List, Literal

import requests

from lyrics_resolver.config import ResolverConfig
from lyrics_resolver.lrc.estimate import estimate_timing
from lyrics_resolver.lrc.model import LyricsCandidate
from lyrics_resolver.lrc.parse import parse_timed_text
from lyrics_resolver.text import is_mostly_cjk

from .base import LyricsSource
from .types import LyricsPayload, SearchResult, TrackQuery

logger = logging.getLogger(__name__)

LRCLIB_API = "https://lrclib.net/api"


def _text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value)
    return s if s.strip() else None


class LrcLibClient:
    def __init__(
        self,
        *,
        base_url: str = LRCLIB_API,
        user_agent: str = "lyrics-resolver",
        timeout_s: float = 10.0,
        max_retries: int = 2,
        backoff_base_s: float = 0.5,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max(1, max_retries)
        self.backoff_base_s = backoff_base_s
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    @classmethod
    def from_config(cls, cfg: ResolverConfig) -> "LrcLibClient":
        return cls(
            user_agent=cfg.user_agent,
            timeout_s=cfg.api_timeout_s,
            max_retries=cfg.api_max_retries,
            backoff_base_s=cfg.api_backoff_base_s,
        )

    def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        """GET with retries on transport errors and 5xx. Raises requests.RequestException."""
        url = f"{self.base_url}{path}"
        for attempt in range(1, self.max_retries + 1):
            try:
                r = self.session.get(url, params=params, timeout=self.timeout_s)
                r.raise_for_status()
                return r.json()
            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else 0
                if status < 500 or attempt == self.max_retries:
                    raise
                logger.warning("lrclib %s error (attempt %s/%s): %s", path, attempt, self.max_retries, e)
            except (requests.ConnectionError, requests.Timeout) as e:
                if attempt == self.max_retries:
                    raise
                logger.warning("lrclib %s error (attempt %s/%s): %s", path, attempt, self.max_retries, e)
            time.sleep(self.backoff_base_s * attempt)
        raise requests.RequestException(f"lrclib {path}: retries exhausted")

    def search(self, track_name: str, artist_name: str) -> List[SearchResult]:
        data = self._get_json("/search", {"track_name": track_name or "", "artist_name": artist_name or ""})
        if not isinstance(data, list):
            raise ValueError("lrclib search: expected a list")

        results = []
        for item in data:
            if not isinstance(item, dict):
                continue
            results.append(
                SearchResult(
                    id=item.get("id"),
                    track_name=item.get("trackName") or "",
                    artist_name=item.get("artistName") or "",
                    album_name=item.get("albumName") or "",
                    duration=item.get("duration"),
                    instrumental=bool(item.get("instrumental", False)),
                    synced_lyrics=_text_or_none(item.get("syncedLyrics")),
                    plain_lyrics=_text_or_none(item.get("plainLyrics")),
                )
            )
        return results

    def get(self, track_id: int) -> LyricsPayload:
        data = self._get_json(f"/get/{track_id}")
        if not isinstance(data, dict):
            raise ValueError("lrclib get: expected an object")
        return LyricsPayload(
            synced_lyrics=_text_or_none(data.get("syncedLyrics")),
            plain_lyrics=_text_or_none(data.get("plainLyrics")),
        )


class LrcLibSource(LyricsSource):
    """
    lrclib.net: search by title/artist, then fetch each hit by id.

    mode="synced" yields timed lyrics; mode="plain" yields estimated timing
    for records that only carry plain text.
    """

    name = "lrclib"
    online = True

    def __init__(self, client: LrcLibClient, *, mode: Literal["synced", "plain"] = "synced"):
        self.client = client
        self.mode = mode

    def available(self, cfg: ResolverConfig) -> bool:
        return self.mode == "synced" or cfg.plain_lyrics_fallback

    def provide(self, query: TrackQuery, cfg: ResolverConfig) -> list[LyricsCandidate]:
        try:
            hits = self.client.search(query.title, query.artist)
        except (requests.RequestException, ValueError) as e:
            logger.warning("lrclib search failed for %s: %s", query.display, e)
            return []

        out: list[LyricsCandidate] = []
        for hit in hits:
            if hit.instrumental or hit.id is None:
                continue
            try:
                payload = self.client.get(hit.id)
            except (requests.RequestException, ValueError) as e:
                logger.warning("lrclib get %s failed: %s", hit.id, e)
                continue
            cand = self._to_candidate(hit, payload, query, cfg)
            if cand is not None:
                out.append(cand)
        logger.debug("lrclib (%s): %d candidates for %s", self.mode, len(out), query.display)
        return out

    def _to_candidate(
        self, hit: SearchResult, payload: LyricsPayload, query: TrackQuery, cfg: ResolverConfig
    ) -> LyricsCandidate | None:
        if self.mode == "synced":
            body = payload.synced_lyrics
            if not body:
                return None
            if cfg.filter_cjk_lyrics and is_mostly_cjk(body):
                return None
            lines = parse_timed_text(body)
        else:
            body = payload.plain_lyrics
            # Synced records are already covered by the synced pass.
            if not body or payload.synced_lyrics:
                return None
            if cfg.filter_cjk_lyrics and is_mostly_cjk(body):
                return None
            duration_ms = query.duration_ms or int((hit.duration or 0) * 1000)
            lines = estimate_timing(body, duration_ms)

        if not lines:
            return None
        plain = self.mode == "plain"
        return LyricsCandidate(
            lines=lines,
            source=self.name,
            artist=hit.artist_name or query.artist,
            title=hit.track_name or query.title,
            album=hit.album_name,
            is_estimated=plain,
            is_plain=plain,
        )
