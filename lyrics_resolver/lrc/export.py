from __future__ import annotations

from typing import Iterable

from .model import LyricLine


def _fmt_lrc_time(ms: int) -> str:
    m, rem = divmod(max(0, ms), 60_000)
    s, ms2 = divmod(rem, 1_000)
    # 3 decimals so a parse/export cycle is lossless
    return f"{m:02d}:{s:02d}.{ms2:03d}"


def export_lrc(lines: Iterable[LyricLine], tags: dict[str, str] | None = None) -> str:
    out: list[str] = []
    if tags:
        for k in sorted(tags.keys()):
            out.append(f"[{k}:{tags[k]}]")

    for ln in lines:
        out.append(f"[{_fmt_lrc_time(ln.t_ms)}]{ln.text}")
    return "\n".join(out) + ("\n" if out else "")
