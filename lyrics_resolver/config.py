from __future__ import annotations

import json
from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Keys of config.json that may override the environment.
_FILE_KEYS = ("filter_cjk_lyrics", "offline_mode", "plain_lyrics_fallback", "offset_ms")


def _config_dir() -> Path:
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "lyrics-resolver"
    return Path.home() / ".config" / "lyrics-resolver"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip() not in ("0", "false", "False", "no", "off", "")


@dataclass(frozen=True)
class ResolverConfig:
    # Storage
    cache_dir: Path
    cache_db_path: Path
    local_db_path: Path | None
    config_dir: Path

    # Filters / modes
    filter_cjk_lyrics: bool = True
    offline_mode: bool = False
    plain_lyrics_fallback: bool = False

    # Remote services
    api_timeout_s: float = 10.0
    api_max_retries: int = 2
    api_backoff_base_s: float = 0.5
    user_agent: str = "lyrics-resolver"

    # Playback / rendering
    offset_ms: int = 0
    refresh_hz: float = 20.0
    highlight_open: str = "<color=yellow>"
    highlight_close: str = "</color>"


def load_config() -> ResolverConfig:
    # XDG base dir fallback
    xdg = os.getenv("XDG_CACHE_HOME")
    cache_env = os.getenv("LYRICS_RESOLVER_CACHE_DIR")
    if cache_env:
        cache_dir = Path(cache_env)
    else:
        cache_dir = (Path(xdg) if xdg else Path.home() / ".cache") / "lyrics-resolver"

    local_db_env = os.getenv("LYRICS_RESOLVER_LOCAL_DB")
    config_dir = _config_dir()

    values: dict[str, Any] = {
        "filter_cjk_lyrics": _env_flag("LYRICS_RESOLVER_FILTER_CJK", True),
        "offline_mode": _env_flag("LYRICS_RESOLVER_OFFLINE", False),
        "plain_lyrics_fallback": _env_flag("LYRICS_RESOLVER_PLAIN_FALLBACK", False),
        "offset_ms": int(os.getenv("LYRICS_RESOLVER_OFFSET_MS", "0")),
    }
    values.update(_load_file_overrides(config_dir))

    return ResolverConfig(
        cache_dir=cache_dir,
        cache_db_path=cache_dir / "lyrics_cache.sqlite3",
        local_db_path=Path(local_db_env) if local_db_env else None,
        config_dir=config_dir,
        filter_cjk_lyrics=bool(values["filter_cjk_lyrics"]),
        offline_mode=bool(values["offline_mode"]),
        plain_lyrics_fallback=bool(values["plain_lyrics_fallback"]),
        api_timeout_s=float(os.getenv("LYRICS_RESOLVER_API_TIMEOUT", "10.0")),
        api_max_retries=int(os.getenv("LYRICS_RESOLVER_API_MAX_RETRIES", "2")),
        api_backoff_base_s=float(os.getenv("LYRICS_RESOLVER_API_BACKOFF_BASE", "0.5")),
        offset_ms=int(values["offset_ms"]),
        refresh_hz=float(os.getenv("LYRICS_RESOLVER_REFRESH_HZ", "20.0")),
    )


def _load_file_overrides(config_dir: Path) -> dict[str, Any]:
    # Priority: config.json → environment → defaults
    cfg_path = config_dir / "config.json"
    if not cfg_path.exists():
        return {}
    try:
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable config %s: %s", cfg_path, e)
        return {}
    if not isinstance(data, dict):
        return {}
    return {k: data[k] for k in _FILE_KEYS if k in data}


def save_config(cfg: ResolverConfig) -> None:
    cfg_path = cfg.config_dir / "config.json"
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data: dict[str, object] = {}
    if cfg_path.exists():
        try:
            data = json.loads(cfg_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            pass
    for k in _FILE_KEYS:
        data[k] = getattr(cfg, k)
    cfg_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
