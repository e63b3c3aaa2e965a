"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Console levels are resolved in precedence order:
    CLI flag  >  DEVSETUP_LOG_LEVEL env var  >  command default

A provisioning run additionally keeps two logs, both opened in append
mode so earlier runs are preserved:
    setup_output.log — everything, including captured command output
    setup_errors.log — warnings and errors only
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# ── Format strings ──────────────────────────────────────────────

# WARNING level — minimal, no noise
_FMT_MINIMAL = "%(message)s"

# INFO level — timestamped progress
_FMT_VERBOSE = "[%(asctime)s] %(message)s"
_DATEFMT_VERBOSE = "%Y-%m-%d %H:%M:%S"

# DEBUG level — full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output — always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

OUTPUT_LOG = "setup_output.log"
ERROR_LOG = "setup_errors.log"


def setup_logging(
    level: str = "WARNING",
    log_dir: str | Path | None = None,
    log_file_level: str = "DEBUG",
) -> list[Path]:
    """Configure Python logging for the entire process.

    Args:
        level: Console log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Directory for the output/error logs. None disables them.
        log_file_level: Level for the output log.

    Returns:
        Paths of the log files opened (empty when ``log_dir`` is None).
    """
    numeric_level = _parse_level(level)

    # ── Console handler (stderr) ────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.addHandler(console)

    effective_level = numeric_level
    opened: list[Path] = []

    # ── Run logs (optional) ─────────────────────────────────────
    if log_dir is not None:
        directory = Path(log_dir).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        file_level = _parse_level(log_file_level)
        file_fmt = logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE)

        out = logging.FileHandler(directory / OUTPUT_LOG, mode="a", encoding="utf-8")
        out.setLevel(file_level)
        out.setFormatter(file_fmt)
        root.addHandler(out)

        err = logging.FileHandler(directory / ERROR_LOG, mode="a", encoding="utf-8")
        err.setLevel(logging.WARNING)
        err.setFormatter(file_fmt)
        root.addHandler(err)

        effective_level = min(effective_level, file_level)
        opened = [directory / OUTPUT_LOG, directory / ERROR_LOG]

    root.setLevel(effective_level)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False
    return opened


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
