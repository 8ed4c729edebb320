from __future__ import annotations

import html
import logging
from typing import Any

import requests

from lyrics_resolver.config import ResolverConfig
from lyrics_resolver.lrc.model import LyricsCandidate
from lyrics_resolver.lrc.parse import parse_timed_text
from lyrics_resolver.text import is_mostly_cjk

from .base import LyricsSource
from .types import TrackQuery

logger = logging.getLogger(__name__)

NETEASE_API = "https://music.163.com/api"

# Lines NetEase serves in place of lyrics ("pure music, please enjoy", "no lyrics yet", ...)
NOT_FOUND_PHRASES = (
    "纯音乐，请欣赏",
    "此歌曲为没有填词的纯音乐",
    "暂时没有歌词",
    "没有找到歌词",
    "未找到歌词",
    "暂无歌词",
)


def is_placeholder(text: str) -> bool:
    return any(phrase in text for phrase in NOT_FOUND_PHRASES)


class NetEaseClient:
    def __init__(
        self,
        *,
        base_url: str = NETEASE_API,
        timeout_s: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self.session.headers.update({"Referer": "https://music.163.com", "Cookie": "appver=2.0.2"})

    def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        r = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout_s)
        r.raise_for_status()
        return r.json()

    def search(self, query: str) -> int | None:
        """Id of the best match for a free-text query, or None."""
        data = self._get_json("/search/get", {"s": query, "type": 1, "limit": 1})
        songs = ((data or {}).get("result") or {}).get("songs") or []
        if not songs or not isinstance(songs[0], dict) or songs[0].get("id") is None:
            return None
        return int(songs[0]["id"])

    def get_lyric(self, song_id: int) -> str | None:
        data = self._get_json("/song/lyric", {"os": "pc", "id": song_id, "lv": -1, "kv": -1, "tv": -1})
        raw = ((data or {}).get("lrc") or {}).get("lyric")
        if not raw:
            return None
        return html.unescape(str(raw)).replace("\\n", "\n")


class NetEaseSource(LyricsSource):
    name = "netease"
    online = True

    def __init__(self, client: NetEaseClient):
        self.client = client

    def provide(self, query: TrackQuery, cfg: ResolverConfig) -> list[LyricsCandidate]:
        search_query = f"{query.title}-{query.artist}"
        logger.debug("NetEase query: %r", search_query)
        try:
            song_id = self.client.search(search_query)
            if song_id is None:
                logger.debug("NetEase: no results for %r", search_query)
                return []
            payload = self.client.get_lyric(song_id)
        except (requests.RequestException, ValueError, AttributeError, TypeError) as e:
            logger.warning("NetEase lookup failed for %s: %s", query.display, e)
            return []

        if not payload:
            logger.debug("NetEase: no lyrics for id=%s", song_id)
            return []
        if cfg.filter_cjk_lyrics and is_mostly_cjk(payload):
            logger.debug("NetEase: id=%s filtered (CJK)", song_id)
            return []

        lines = tuple(ln for ln in parse_timed_text(payload) if not is_placeholder(ln.text))
        if not lines:
            return []
        return [LyricsCandidate(lines=lines, source=self.name, artist=query.artist, title=query.title)]
