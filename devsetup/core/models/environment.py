"""
Host environment models — what kind of host we are on, and where things live.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from pathlib import Path

from pydantic import BaseModel

TERMUX_PREFIX = "/data/data/com.termux/files/usr"


class EnvironmentKind(str, Enum):
    """Classification of the running host. Computed once per run."""

    TERMUX = "termux"
    UBUNTU_PROOT = "ubuntu-proot"
    OTHER_PROOT = "other-proot"
    UNKNOWN = "unknown"

    @property
    def supported(self) -> bool:
        return self in (EnvironmentKind.TERMUX, EnvironmentKind.UBUNTU_PROOT)

    @property
    def label(self) -> str:
        return {
            EnvironmentKind.TERMUX: "Termux",
            EnvironmentKind.UBUNTU_PROOT: "Ubuntu (proot guest)",
            EnvironmentKind.OTHER_PROOT: "proot guest (unrecognised distribution)",
            EnvironmentKind.UNKNOWN: "unknown host",
        }[self]


class HostPaths(BaseModel):
    """Per-user locations the provisioning steps write to."""

    home: Path
    xdg_data_home: Path
    xdg_config_home: Path
    xdg_state_home: Path
    prefix: Path

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> HostPaths:
        home = Path(environ.get("HOME") or Path.home())
        return cls(
            home=home,
            xdg_data_home=Path(environ.get("XDG_DATA_HOME") or home / ".local" / "share"),
            xdg_config_home=Path(environ.get("XDG_CONFIG_HOME") or home / ".config"),
            xdg_state_home=Path(environ.get("XDG_STATE_HOME") or home / ".local" / "state"),
            prefix=Path(environ.get("PREFIX") or TERMUX_PREFIX),
        )

    # ── Well-known files ────────────────────────────────────────

    @property
    def zshrc(self) -> Path:
        return self.home / ".zshrc"

    @property
    def termux_properties(self) -> Path:
        return self.home / ".termux" / "termux.properties"

    @property
    def oh_my_zsh(self) -> Path:
        return self.home / ".oh-my-zsh"

    @property
    def plug_vim(self) -> Path:
        return self.xdg_data_home / "nvim" / "site" / "autoload" / "plug.vim"

    @property
    def nvim_config_dir(self) -> Path:
        # Not XDG_CONFIG_HOME: Neovim on Termux reads ~/.config/nvim
        return self.home / ".config" / "nvim"

    @property
    def nvim_init(self) -> Path:
        return self.nvim_config_dir / "init.vim"

    @property
    def ssh_dir(self) -> Path:
        return self.home / ".ssh"

    def distro_rootfs(self, distro: str) -> Path:
        return self.prefix / "var" / "lib" / "proot-distro" / "installed-rootfs" / distro
