from __future__ import annotations

import logging
import os


def setup_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO
    # Allow env override for e.g. service runs
    level_name = os.getenv("LYRICS_RESOLVER_LOG_LEVEL")
    if level_name:
        level = getattr(logging, level_name.upper(), level)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # Keep per-request noise out of normal runs
    if not debug:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
