"""
Idempotent edits to line-oriented dotfiles (shell rc, properties files).

Writes are IDEMPOTENT — a line already present is never appended twice,
so re-running a step leaves the file byte-for-byte unchanged.
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

HEADER = "# Added by devsetup"


def read_lines(path: Path) -> list[str]:
    """Stripped lines of ``path`` (empty when it does not exist)."""
    try:
        return [ln.strip() for ln in path.read_text(encoding="utf-8").splitlines()]
    except FileNotFoundError:
        return []


def missing_lines(path: Path, lines: list[str]) -> list[str]:
    """Lines not yet present in ``path`` (exact match, ignoring surrounding whitespace)."""
    existing = set(read_lines(path))
    result: list[str] = []
    for line in lines:
        if line.strip() and line.strip() not in existing and line not in result:
            result.append(line)
    return result


def property_key(line: str) -> str:
    return line.split("=", 1)[0].strip()


def missing_properties(path: Path, entries: list[str]) -> list[str]:
    """``key = value`` entries whose key is not yet set in ``path``.

    A key that is already set is left alone, whatever its value: the
    user may have changed it on purpose.
    """
    keys = {property_key(ln) for ln in read_lines(path) if ln and not ln.startswith("#") and "=" in ln}
    return [e for e in entries if property_key(e) not in keys]


def append_lines(path: Path, lines: list[str], header: str | None = HEADER) -> list[str]:
    """Append ``lines`` to ``path``, creating it (and its parents) if needed.

    Returns:
        The lines actually written (empty when nothing was missing).
    """
    if not lines:
        return []

    path.parent.mkdir(parents=True, exist_ok=True)

    existing = ""
    if path.is_file():
        existing = path.read_text(encoding="utf-8")

    with path.open("a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        if header:
            f.write(f"{header}\n")
        for line in lines:
            f.write(f"{line}\n")

    logger.info("Appended %d line(s) to %s", len(lines), path)
    return list(lines)


def ensure_lines(path: Path, lines: list[str]) -> list[str]:
    """Append whichever of ``lines`` are missing. Returns what was written."""
    return append_lines(path, missing_lines(path, lines))
