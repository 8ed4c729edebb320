from __future__ import annotations

from typing import TYPE_CHECKING

from lyrics_resolver.lrc.model import LyricsCandidate

from .types import TrackQuery

if TYPE_CHECKING:
    from lyrics_resolver.config import ResolverConfig


class LyricsSource:
    """
    A place lyrics can come from.

    `provide` never raises: failures are logged by the source and reported
    as an empty list.
    """

    name: str
    # Online sources are skipped entirely in offline mode.
    online: bool = False

    def available(self, cfg: ResolverConfig) -> bool:
        return True

    def provide(self, query: TrackQuery, cfg: ResolverConfig) -> list[LyricsCandidate]:
        raise NotImplementedError
