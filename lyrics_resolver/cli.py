from __future__ import annotations

import dataclasses
import json
from pathlib import Path

import colorama
import typer

from lyrics_resolver.app import PlaybackClock, follow
from lyrics_resolver.cache.sqlite import LyricsCache
from lyrics_resolver.config import load_config, save_config
from lyrics_resolver.logging_setup import setup_logging
from lyrics_resolver.lrc.estimate import estimate_timing
from lyrics_resolver.lrc.export import export_lrc
from lyrics_resolver.lrc.parse import parse_lrc_with_stats
from lyrics_resolver.sources.service import LyricsService
from lyrics_resolver.sources.types import TrackQuery


app = typer.Typer(no_args_is_help=True, add_completion=False)


def _overrides(offline: bool, plain: bool, no_cjk_filter: bool) -> dict[str, bool]:
    out: dict[str, bool] = {}
    if offline:
        out["offline_mode"] = True
    if plain:
        out["plain_lyrics_fallback"] = True
    if no_cjk_filter:
        out["filter_cjk_lyrics"] = False
    return out


def _pick(svc: LyricsService, pick: int) -> None:
    """Cycle to the 1-based result `pick`."""
    if pick <= 1:
        return
    if not svc.has_multiple_results or pick > svc.total_results:
        raise typer.BadParameter(f"only {svc.total_results} result(s) available", param_hint="--pick")
    for _ in range(pick - 1):
        svc.next_lyrics()


@app.command()
def lookup(
    title: str,
    artist: str,
    duration: float = typer.Option(0.0, "--duration", "-d", help="Track duration in seconds"),
    low_trust: bool = typer.Option(False, "--low-trust", help="Title comes from a noisy source (browser tab)"),
    offline: bool = typer.Option(False, "--offline", help="Skip online sources"),
    plain: bool = typer.Option(False, "--plain", help="Allow plain lyrics with estimated timing"),
    no_cjk_filter: bool = typer.Option(False, "--no-cjk-filter", help="Keep mostly-CJK lyrics"),
    pick: int = typer.Option(1, "--pick", "-p", min=1, help="Select result N instead of the best match"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Find lyrics for a track and list every accepted candidate."""
    setup_logging(debug)
    cfg = load_config()
    svc = LyricsService(cfg)
    svc.update_config(**_overrides(offline, plain, no_cjk_filter))
    svc.fetch(title, artist, int(duration * 1000), low_trust)
    _pick(svc, pick)

    results = svc.results
    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "source": r.candidate.label,
                        "artist": r.candidate.artist,
                        "title": r.candidate.title,
                        "album": r.candidate.album,
                        "score": r.score,
                        "lines": len(r.candidate.lines),
                        "selected": i == svc.current_index,
                    }
                    for i, r in enumerate(results)
                ],
                indent=2,
                ensure_ascii=False,
            )
        )
        return

    if not results:
        typer.echo("No lyrics found")
        raise typer.Exit(code=1)

    for i, r in enumerate(results):
        mark = "*" if i == svc.current_index else " "
        typer.echo(f"{mark} {i + 1}. [{r.score}] {r.candidate.label}: {r.candidate.artist} - {r.candidate.title}")
        if r.candidate.album:
            typer.echo(f"     Album: {r.candidate.album}")
        typer.echo(f"     Lines: {len(r.candidate.lines)}")


@app.command()
def play(
    title: str,
    artist: str,
    duration: float = typer.Option(0.0, "--duration", "-d", help="Track duration in seconds"),
    start: float = typer.Option(0.0, "--start", help="Start position in seconds"),
    word_sync: bool = typer.Option(False, "--word-sync", "-w", help="Highlight the current word"),
    pick: int = typer.Option(1, "--pick", "-p", min=1, help="Select result N instead of the best match"),
    low_trust: bool = typer.Option(False, "--low-trust", help="Title comes from a noisy source (browser tab)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Print lyrics in time with a simulated playback clock."""
    setup_logging(debug)
    colorama.init()
    cfg = load_config()
    svc = LyricsService(cfg)
    svc.update_config(
        highlight_open=colorama.Fore.YELLOW + colorama.Style.BRIGHT,
        highlight_close=colorama.Style.RESET_ALL,
    )
    query = TrackQuery(title=title, artist=artist, duration_ms=int(duration * 1000))
    if pick > 1:
        # results must exist before cycling; follow() then skips its own fetch
        svc.fetch(query.title, query.artist, query.duration_ms, low_trust)
        _pick(svc, pick)
    try:
        follow(
            svc,
            query,
            PlaybackClock(start_ms=int(start * 1000)),
            typer.echo,
            word_sync=word_sync,
            low_trust_title=low_trust,
        )
    except KeyboardInterrupt:
        pass
    finally:
        colorama.deinit()
    typer.echo(f"Source: {svc.current_source_label()}")


@app.command()
def parse(lrc_path: Path):
    """Parse LRC and print stats."""
    text = lrc_path.read_text(encoding="utf-8")
    doc, stats = parse_lrc_with_stats(text)
    typer.echo(f"lines_total={stats.lines_total}")
    typer.echo(f"lines_with_timestamps={stats.lines_with_timestamps}")
    typer.echo(f"lines_ignored={stats.lines_ignored}")
    typer.echo(f"lines_emitted={stats.lines_emitted}")
    typer.echo(f"offset_ms={doc.offset_ms}")
    typer.echo(f"tags={doc.tags or {}}")


@app.command()
def estimate(
    text_path: Path,
    duration: float = typer.Option(..., "--duration", "-d", help="Track duration in seconds"),
    out: Path | None = typer.Option(None, "--out", help="Output file (default: stdout)"),
):
    """Estimate timing for plain lyrics and print them as LRC."""
    if duration <= 0:
        raise typer.BadParameter("duration must be positive")
    lines = estimate_timing(text_path.read_text(encoding="utf-8"), int(duration * 1000))
    data = export_lrc(lines)
    if out:
        out.write_text(data, encoding="utf-8")
    else:
        typer.echo(data, nl=False)


@app.command()
def cache(
    clear: bool = typer.Option(False, "--clear", help="Clear lyrics cache"),
    forget: tuple[str, str] | None = typer.Option(None, "--forget", help="Drop one entry: TITLE ARTIST"),
):
    """Manage lyrics cache."""
    cfg = load_config()
    cache_db = LyricsCache(cfg.cache_db_path)

    if clear:
        cache_db.clear_all()
        typer.echo(f"Cache cleared: {cfg.cache_db_path}")
    elif forget:
        title, artist = forget
        removed = cache_db.clear(title, artist)
        typer.echo(f"Removed: {artist} - {title}" if removed else "Not cached")
    else:
        typer.echo("Use --clear or --forget TITLE ARTIST")


@app.command("config")
def config_cmd(
    offline: bool | None = typer.Option(None, "--offline/--online", help="Skip online sources"),
    cjk_filter: bool | None = typer.Option(None, "--cjk-filter/--no-cjk-filter", help="Reject mostly-CJK lyrics"),
    plain: bool | None = typer.Option(None, "--plain/--no-plain", help="Allow plain lyrics with estimated timing"),
    offset: int | None = typer.Option(None, "--offset", help="Lyrics offset in milliseconds"),
):
    """Show settings, or change and persist them."""
    cfg = load_config()
    changes = {
        k: v
        for k, v in (
            ("offline_mode", offline),
            ("filter_cjk_lyrics", cjk_filter),
            ("plain_lyrics_fallback", plain),
            ("offset_ms", offset),
        )
        if v is not None
    }
    if changes:
        cfg = dataclasses.replace(cfg, **changes)
        save_config(cfg)
        typer.echo(f"Saved: {cfg.config_dir / 'config.json'}")

    typer.echo(f"offline_mode={cfg.offline_mode}")
    typer.echo(f"filter_cjk_lyrics={cfg.filter_cjk_lyrics}")
    typer.echo(f"plain_lyrics_fallback={cfg.plain_lyrics_fallback}")
    typer.echo(f"offset_ms={cfg.offset_ms}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
