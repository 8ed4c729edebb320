from __future__ import annotations

from dataclasses import dataclass
import logging
import re

from .model import LrcDocument, LyricLine

logger = logging.getLogger(__name__)

_TS_RE = re.compile(r"\[(\d{1,3}):(\d{2})(?:\.(\d{1,3}))?\]")  # [mm:ss] / [mm:ss.xx] / [mm:ss.xxx]
_OFFSET_RE = re.compile(r"^\[offset:\s*([+-]?\d+)\s*\]\s*$", re.IGNORECASE)
_TAG_RE = re.compile(r"^\[([a-zA-Z]{1,8}):(.*)\]\s*$")


class LrcParseError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class LrcParseStats:
    lines_total: int
    lines_emitted: int
    lines_with_timestamps: int
    lines_ignored: int


def _parse_ts_to_ms(m: int, s: int, frac: str | None) -> int:
    if not (0 <= s <= 59):
        raise LrcParseError(f"Invalid seconds: {s}")
    if frac is None:
        ms = 0
    else:
        # "2" -> 200ms, "23" -> 230ms, "234" -> 234ms
        ms = int(frac.ljust(3, "0")[:3])
    return m * 60_000 + s * 1000 + ms


def parse_lrc_with_stats(text: str) -> tuple[LrcDocument, LrcParseStats]:
    """
    Supported:
    - [mm:ss], [mm:ss.xx], [mm:ss.xxx]
    - multiple timestamps per line, anywhere on the line
    - [offset:+/-ms]
    - basic tags: [ar:], [ti:], [al:], ...

    Result is normalized:
    - one line per timestamp, text stripped of every tag
    - blank texts dropped
    - stable sort by time (ties keep emission order)
    - negative times clamped to 0
    """
    offset_ms = 0
    tags: dict[str, str] = {}
    lines: list[LyricLine] = []

    total = 0
    lines_with_ts = 0
    ignored = 0

    for raw in (text or "").splitlines():
        total += 1
        line = raw.strip()
        if not line:
            ignored += 1
            continue

        off = _OFFSET_RE.match(line)
        if off:
            offset_ms = int(off.group(1))
            continue

        ts = list(_TS_RE.finditer(line))
        if not ts:
            tag = _TAG_RE.match(line)
            if tag:
                k = tag.group(1).strip().lower()
                v = tag.group(2).strip()
                if k and v:
                    tags[k] = v
            else:
                ignored += 1
            continue

        payload = _TS_RE.sub("", line).strip()
        if not payload:
            ignored += 1
            continue

        try:
            stamps = [_parse_ts_to_ms(int(m.group(1)), int(m.group(2)), m.group(3)) for m in ts]
        except LrcParseError as e:
            logger.debug("Skipping LRC line %r: %s", line, e)
            ignored += 1
            continue

        lines_with_ts += 1
        for t_ms in stamps:
            lines.append(LyricLine(t_ms=max(0, t_ms + offset_ms), text=payload))

    lines.sort(key=lambda ln: ln.t_ms)

    doc = LrcDocument(lines=tuple(lines), offset_ms=offset_ms, tags=tags)
    stats = LrcParseStats(
        lines_total=total,
        lines_emitted=len(doc.lines),
        lines_with_timestamps=lines_with_ts,
        lines_ignored=ignored,
    )
    return doc, stats


def parse_lrc(text: str) -> LrcDocument:
    doc, _stats = parse_lrc_with_stats(text)
    return doc


def parse_timed_text(text: str) -> tuple[LyricLine, ...]:
    return parse_lrc(text).lines
