"""
Static content shipped with the package.

``init.vim`` is the default Neovim configuration written by the
``configure-editor`` step. A user-supplied template replaces it.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent
DEFAULT_INIT_VIM = _DATA_DIR / "init.vim"

_PLUG_RE = re.compile(r"""^\s*Plug\s+['"]([^'"]+)['"]""", re.MULTILINE)
_PLUG_DIR_RE = re.compile(r"""plug#begin\(\s*['"]([^'"]+)['"]\s*\)""")
_TS_LANG_RE = re.compile(r"ensure_installed\s*=\s*\{([^}]*)\}")


def load_init_template(path: str | Path | None = None) -> str:
    """Return the editor config to write (custom template or the default)."""
    source = Path(path).expanduser() if path else DEFAULT_INIT_VIM
    logger.debug("Editor template: %s", source)
    return source.read_text(encoding="utf-8")


def declared_plugins(init_text: str) -> list[str]:
    """Plugin directory names declared with ``Plug 'owner/repo'``."""
    return [spec.rstrip("/").rsplit("/", 1)[-1] for spec in _PLUG_RE.findall(init_text)]


def plugin_dir(init_text: str, home: Path) -> Path:
    """Directory passed to ``plug#begin``, expanded against ``home``."""
    match = _PLUG_DIR_RE.search(init_text)
    raw = match.group(1) if match else "~/.local/share/nvim/plugged"
    if raw.startswith("~/"):
        return home / raw[2:]
    return Path(raw)


def treesitter_languages(init_text: str) -> list[str]:
    """Parsers listed in the treesitter ``ensure_installed`` table."""
    match = _TS_LANG_RE.search(init_text)
    if not match:
        return []
    return re.findall(r"""['"]([\w-]+)['"]""", match.group(1))
