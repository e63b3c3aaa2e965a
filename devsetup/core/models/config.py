"""
SetupConfig — user-tunable provisioning parameters.

Everything here has a default matching the stock Termux setup, so an
empty (or absent) config file provisions the standard environment.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

OH_MY_ZSH_INSTALLER = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
VIM_PLUG_URL = "https://raw.githubusercontent.com/junegunn/vim-plug/master/plug.vim"


class PackageLists(BaseModel):
    """Packages installed by the package step, per backend."""

    termux: list[str] = Field(default_factory=lambda: [
        "git", "nodejs", "curl", "wget", "openssh", "zsh", "neovim",
        "ncurses-utils", "clang", "make", "proot", "proot-distro", "termux-tools",
    ])
    ubuntu: list[str] = Field(default_factory=lambda: [
        "git", "nodejs", "curl", "wget", "openssh-client", "zsh", "neovim",
        "ncurses-bin", "clang", "make",
    ])


class ShellSettings(BaseModel):
    framework_url: str = OH_MY_ZSH_INSTALLER
    default_shell: str = "zsh"
    rc_exports: list[str] = Field(default_factory=lambda: [
        "COLORTERM=truecolor",
        "TERM=xterm-256color",
    ])


class TerminalSettings(BaseModel):
    properties: list[str] = Field(default_factory=lambda: [
        "termux-transient-keys = enter,arrow",
    ])


class EditorSettings(BaseModel):
    overwrite: bool = False
    plug_url: str = VIM_PLUG_URL
    init_template: str | None = None    # path to a custom init.vim


class VerifySettings(BaseModel):
    tools: list[str] = Field(default_factory=lambda: ["git", "node", "nvim", "zsh"])


class GitSettings(BaseModel):
    name: str = ""
    email: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.name and self.email)


class SshSettings(BaseModel):
    generate: bool = False
    key_type: str = "ed25519"
    comment: str = ""

    @field_validator("key_type")
    @classmethod
    def _known_key_type(cls, v: str) -> str:
        allowed = {"ed25519", "rsa", "ecdsa"}
        if v not in allowed:
            raise ValueError(f"key_type must be one of {sorted(allowed)}, got {v!r}")
        return v


class SetupConfig(BaseModel):
    """Root configuration model (``devsetup.yml``)."""

    packages: PackageLists = Field(default_factory=PackageLists)
    distro: str | None = "ubuntu"       # guest installed from Termux; None disables
    shell: ShellSettings = Field(default_factory=ShellSettings)
    terminal: TerminalSettings = Field(default_factory=TerminalSettings)
    editor: EditorSettings = Field(default_factory=EditorSettings)
    verify: VerifySettings = Field(default_factory=VerifySettings)
    git: GitSettings = Field(default_factory=GitSettings)
    ssh: SshSettings = Field(default_factory=SshSettings)
    parallel_finalize: bool = False     # opt-in; see build_plan
    command_timeout: float = 1800       # seconds; 0 blocks forever
    log_dir: str = "."

    @field_validator("command_timeout")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("command_timeout must be >= 0")
        return v
