"""
Logging configuration — one setup call from the CLI group.

Every module does ``logger = logging.getLogger(__name__)`` and inherits
what is configured here.  The console level comes from the CLI flags
(``--debug``, ``--verbose``, ``--quiet``), else ``EMAP_LOG_LEVEL``, else
WARNING.  ``EMAP_LOG_FILE`` adds a detailed file log whose level is
``EMAP_LOG_FILE_LEVEL`` (default: the console level).

Request threads interleave under the threaded server, so every format
at INFO and DEBUG names the thread.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

_DETAILED = "%(asctime)s %(levelname)-5s %(threadName)s %(name)s:%(lineno)d — %(message)s"

# (max level, format, datefmt), first match wins
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(threadName)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# One line per request at INFO; only shown when debugging
_REQUEST_LOGGER = "werkzeug"


def setup_logging(cli_level: str | None = None, *, env: Mapping[str, str] | None = None) -> int:
    """Configure the root logger for the whole process.

    Args:
        cli_level: Level chosen by a CLI flag, or None to defer to the
            environment.
        env: Environment mapping (default: ``os.environ``).

    Returns:
        The resolved console level.
    """
    env = os.environ if env is None else env
    level = level_from_name(cli_level or env.get("EMAP_LOG_LEVEL"))

    fmt, datefmt = next((f, d) for ceiling, f, d in _CONSOLE_FORMATS if level <= ceiling)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = level

    log_file = env.get("EMAP_LOG_FILE")
    if log_file:
        file_level = level_from_name(env.get("EMAP_LOG_FILE_LEVEL"), default=level)
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_DETAILED, datefmt=_FILE_DATEFMT))
        root.addHandler(fh)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)
    logging.getLogger(_REQUEST_LOGGER).setLevel(
        logging.NOTSET if level <= logging.DEBUG else logging.WARNING
    )
    return level


def level_from_name(name: str | None, default: int = logging.WARNING) -> int:
    """Level name → numeric constant.  Unknown or empty names give ``default``."""
    numeric = getattr(logging, (name or "").strip().upper(), None)
    return numeric if isinstance(numeric, int) and name else default
