"""Logging setup for the CLI and the HTTP server."""

from __future__ import annotations

import logging
import os
from typing import Final

from .errors import ConfigurationError

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# per-request INFO lines from these drown out cycle logs
_CHATTY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore")


def _level_from_env(default: int) -> int:
    raw = os.getenv("SUBSYNC_LOG_LEVEL")
    if raw is None or not raw.strip():
        return default
    level = logging.getLevelNamesMapping().get(raw.strip().upper())
    if level is None:
        raise ConfigurationError(f"SUBSYNC_LOG_LEVEL is not a logging level: {raw!r}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once.

    ``level`` defaults to ``SUBSYNC_LOG_LEVEL`` or INFO. Pass ``force=True`` to
    reconfigure during tests or specialised entry points.
    """

    resolved = level if level is not None else _level_from_env(logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
