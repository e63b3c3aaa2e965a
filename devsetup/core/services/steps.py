"""
Step catalogue — the concrete provisioning steps.

Each factory returns a ``ProvisioningStep`` whose ``check`` answers
"is this already done?" and whose ``run`` does the work through the
context's command runner, raising ``StepError`` on failure.

Order matters and is decided by the caller (see ``use_cases.provision``):
the shell framework must exist before the rc file is edited, and the
plugin manager must exist before plugins are installed.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from devsetup.adapters.base import CommandResult
from devsetup.core.data import declared_plugins, plugin_dir, treesitter_languages
from devsetup.core.errors import CommandFailed, PreconditionUnmet
from devsetup.core.models.step import ProvisioningStep, StepContext
from devsetup.core.services import rcfile

logger = logging.getLogger(__name__)


def _require(result: CommandResult, hint: str | None = None) -> CommandResult:
    if not result.ok:
        raise CommandFailed.from_result(result, hint=hint)
    return result


def _require_tool(ctx: StepContext, tool: str, hint: str | None = None) -> str:
    path = ctx.runner.which(tool)
    if not path:
        raise PreconditionUnmet(f"'{tool}' not found in PATH", hint=hint)
    return path


# ── Packages ────────────────────────────────────────────────────


def prepare_backend_step() -> ProvisioningStep:
    """Install the backend's prerequisite tool (e.g. sudo) when it is absent."""

    def check(ctx: StepContext) -> bool:
        prereq = ctx.backend.prerequisite
        return prereq is None or ctx.runner.which(prereq.tool) is not None

    def run(ctx: StepContext) -> None:
        prereq = ctx.backend.prerequisite
        if prereq is None:
            return
        logger.info("Installing %s (required by %s)", prereq.package, ctx.backend.name)
        _require(ctx.run(ctx.backend.install_command_for([prereq.package]), env=ctx.backend.env))

    return ProvisioningStep(
        name="prepare-backend",
        run=run,
        check=check,
        description="Ensure package-manager prerequisites",
    )


def packages_installed(ctx: StepContext, packages: list[str]) -> bool:
    """True when dpkg reports every package as installed.

    Both Termux's ``pkg`` and Ubuntu's ``apt`` sit on dpkg.
    """
    if not packages:
        return True
    if not ctx.runner.which("dpkg-query"):
        return False
    result = ctx.run(["dpkg-query", "-W", "--showformat=${Status}\n", *packages])
    if not result.ok:
        return False
    statuses = [ln for ln in result.stdout.splitlines() if ln.strip()]
    return len(statuses) == len(packages) and all(
        "install ok installed" in s for s in statuses
    )


def install_packages_step(packages: list[str]) -> ProvisioningStep:
    """Refresh the package index, then install ``packages``."""

    def check(ctx: StepContext) -> bool:
        return packages_installed(ctx, packages)

    def run(ctx: StepContext) -> None:
        logger.info("Updating package repositories...")
        _require(
            ctx.run(ctx.backend.update_command, env=ctx.backend.env),
            hint="Check network access, or switch mirrors (termux-change-repo).",
        )
        logger.info("Installing %d packages...", len(packages))
        _require(ctx.run(ctx.backend.install_command_for(packages), env=ctx.backend.env))

    return ProvisioningStep(
        name="install-packages",
        run=run,
        check=check,
        description="Install core packages",
    )


def install_distro_step(distro: str) -> ProvisioningStep:
    """Install a proot guest distribution (Termux only)."""

    def check(ctx: StepContext) -> bool:
        return ctx.paths.distro_rootfs(distro).is_dir()

    def run(ctx: StepContext) -> None:
        _require_tool(ctx, "proot-distro", hint="Install it with: pkg install proot-distro")
        logger.info("Installing %s distribution...", distro)
        _require(ctx.run(["proot-distro", "install", distro]))

    return ProvisioningStep(
        name="install-distro",
        run=run,
        check=check,
        description=f"Install {distro} via proot-distro",
    )


# ── Shell ───────────────────────────────────────────────────────


def install_shell_framework_step(installer_url: str) -> ProvisioningStep:
    """Install Oh My Zsh without launching zsh or changing the login shell."""

    def check(ctx: StepContext) -> bool:
        return (ctx.paths.oh_my_zsh / "oh-my-zsh.sh").is_file()

    def run(ctx: StepContext) -> None:
        _require_tool(ctx, "curl")
        with tempfile.TemporaryDirectory(prefix="devsetup-") as tmp:
            script = Path(tmp) / "install.sh"
            _require(
                ctx.run(["curl", "-fsSL", "-o", str(script), installer_url]),
                hint="The installer is fetched over the network; check connectivity.",
            )
            _require(ctx.run(
                ["sh", str(script), "--unattended"],
                env={"RUNZSH": "no", "CHSH": "no", "HOME": str(ctx.paths.home)},
            ))

    return ProvisioningStep(
        name="install-shell-framework",
        run=run,
        check=check,
        description="Install Oh My Zsh",
    )


def passwd_shell(ctx: StepContext) -> str | None:
    """Login shell from the passwd database, or None when unavailable."""
    result = ctx.run(["getent", "passwd", str(os.getuid())])
    if not result.ok:
        return None
    fields = result.first_line.split(":")
    if len(fields) < 7 or not fields[6]:
        return None
    return fields[6]


def set_default_shell_step(shell: str, termux: bool) -> ProvisioningStep:
    """Make ``shell`` the login shell."""

    def check(ctx: StepContext) -> bool:
        if termux:
            if Path(ctx.environ.get("SHELL", "")).name == shell:
                return True
            link = ctx.paths.home / ".termux" / "shell"
            return link.exists() and link.resolve().name == shell
        # chsh edits passwd, not the running session's $SHELL
        current = passwd_shell(ctx) or ctx.environ.get("SHELL", "")
        return Path(current).name == shell

    def run(ctx: StepContext) -> None:
        _require_tool(ctx, "chsh")
        target = shell if termux else (ctx.runner.which(shell) or shell)
        _require(
            ctx.run(["chsh", "-s", target]),
            hint=(
                "Run 'termux-reload-settings', then restart the Termux session."
                if termux else f"Run 'chsh -s {target}' manually."
            ),
        )

    return ProvisioningStep(
        name="set-default-shell",
        run=run,
        check=check,
        description=f"Set {shell} as the default shell",
    )


def configure_terminal_step(
    properties: list[str],
    exports: list[str],
    termux: bool,
) -> ProvisioningStep:
    """Truecolor exports and terminal key handling. Cosmetic, so best-effort."""
    export_lines = [f"export {e}" for e in exports]

    def check(ctx: StepContext) -> bool:
        if termux and rcfile.missing_properties(ctx.paths.termux_properties, properties):
            return False
        zshrc = ctx.paths.zshrc
        return not (zshrc.is_file() and rcfile.missing_lines(zshrc, export_lines))

    def run(ctx: StepContext) -> None:
        if ctx.dry_run:
            logger.info("Would update %s and %s", ctx.paths.termux_properties, ctx.paths.zshrc)
        elif termux:
            try:
                rcfile.append_lines(
                    ctx.paths.termux_properties,
                    rcfile.missing_properties(ctx.paths.termux_properties, properties),
                )
            except OSError as e:
                raise PreconditionUnmet(f"cannot write {ctx.paths.termux_properties}: {e}") from e

        # Only touch .zshrc once the shell framework has created it
        if not ctx.dry_run and ctx.paths.zshrc.is_file():
            rcfile.ensure_lines(ctx.paths.zshrc, export_lines)

        if termux:
            _require(ctx.run(["termux-reload-settings"]))

    return ProvisioningStep(
        name="configure-terminal",
        run=run,
        check=check,
        best_effort=True,
        description="Configure truecolor and terminal keys",
    )


# ── Editor ──────────────────────────────────────────────────────


def install_plugin_manager_step(plug_url: str) -> ProvisioningStep:
    """Download vim-plug into the Neovim autoload directory."""

    def check(ctx: StepContext) -> bool:
        return ctx.paths.plug_vim.is_file()

    def run(ctx: StepContext) -> None:
        _require_tool(ctx, "curl")
        _require(ctx.run(["curl", "-fLo", str(ctx.paths.plug_vim), "--create-dirs", plug_url]))

    return ProvisioningStep(
        name="install-plugin-manager",
        run=run,
        check=check,
        description="Install vim-plug",
    )


def configure_editor_step(template: str, overwrite: bool = False) -> ProvisioningStep:
    """Write ``init.vim``.

    With ``overwrite`` False an existing file is kept as is. With
    ``overwrite`` True it is replaced unless it already matches.
    """

    def check(ctx: StepContext) -> bool:
        init = ctx.paths.nvim_init
        if not init.is_file():
            return False
        if not overwrite:
            return True
        return init.read_text(encoding="utf-8") == template

    def run(ctx: StepContext) -> None:
        if ctx.dry_run:
            logger.info("Would write %s", ctx.paths.nvim_init)
            return
        directory = ctx.paths.nvim_config_dir
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PreconditionUnmet(f"cannot create {directory}: {e}") from e
        ctx.paths.nvim_init.write_text(template, encoding="utf-8")
        logger.info("Wrote %s", ctx.paths.nvim_init)

    return ProvisioningStep(
        name="configure-editor",
        run=run,
        check=check,
        description="Write Neovim configuration",
    )


def _read_init(ctx: StepContext) -> str:
    try:
        return ctx.paths.nvim_init.read_text(encoding="utf-8")
    except OSError:
        return ""


def install_editor_plugins_step() -> ProvisioningStep:
    """Run ``:PlugInstall`` headlessly."""

    def check(ctx: StepContext) -> bool:
        text = _read_init(ctx)
        plugins = declared_plugins(text)
        if not plugins:
            return False
        root = plugin_dir(text, ctx.paths.home)
        return all((root / p).is_dir() for p in plugins)

    def run(ctx: StepContext) -> None:
        # A dry run never downloaded the plugin manager
        if not ctx.dry_run and not ctx.paths.plug_vim.is_file():
            raise PreconditionUnmet(
                f"plugin manager missing: {ctx.paths.plug_vim}",
                hint="install-plugin-manager must run before install-editor-plugins.",
            )
        _require_tool(ctx, "nvim")
        _require(ctx.run(["nvim", "--headless", "+PlugInstall", "+qa"]))

    return ProvisioningStep(
        name="install-editor-plugins",
        run=run,
        check=check,
        description="Install Neovim plugins",
    )


def compile_parsers_step() -> ProvisioningStep:
    """Build the treesitter parsers listed in ``init.vim``."""

    def check(ctx: StepContext) -> bool:
        text = _read_init(ctx)
        languages = treesitter_languages(text)
        if not languages:
            return True
        parsers = plugin_dir(text, ctx.paths.home) / "nvim-treesitter" / "parser"
        return all((parsers / f"{lang}.so").is_file() for lang in languages)

    def run(ctx: StepContext) -> None:
        _require_tool(ctx, "nvim")
        _require(ctx.run(["nvim", "--headless", "+TSUpdateSync", "+qa"]))

    return ProvisioningStep(
        name="compile-parsers",
        run=run,
        check=check,
        description="Compile treesitter parsers",
    )


# ── Identity ────────────────────────────────────────────────────


def configure_git_step(name: str, email: str) -> ProvisioningStep:
    """Set the global Git identity."""
    wanted = {"user.name": name, "user.email": email}

    def _current(ctx: StepContext, key: str) -> str:
        result = ctx.run(["git", "config", "--global", "--get", key])
        return result.stdout.strip() if result.ok else ""

    def check(ctx: StepContext) -> bool:
        if not ctx.runner.which("git"):
            return False
        return all(_current(ctx, k) == v for k, v in wanted.items())

    def run(ctx: StepContext) -> None:
        _require_tool(ctx, "git")
        for key, value in wanted.items():
            _require(ctx.run(["git", "config", "--global", key, value]))

    return ProvisioningStep(
        name="configure-git",
        run=run,
        check=check,
        description="Configure Git identity",
    )


def generate_ssh_key_step(key_type: str = "ed25519", comment: str = "") -> ProvisioningStep:
    """Create an SSH key pair without a passphrase."""

    def _key(ctx: StepContext) -> Path:
        return ctx.paths.ssh_dir / f"id_{key_type}"

    def check(ctx: StepContext) -> bool:
        return _key(ctx).is_file()

    def run(ctx: StepContext) -> None:
        _require_tool(ctx, "ssh-keygen", hint="Install openssh first.")
        if not ctx.dry_run:
            try:
                ctx.paths.ssh_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
            except OSError as e:
                raise PreconditionUnmet(f"cannot create {ctx.paths.ssh_dir}: {e}") from e
        command = ["ssh-keygen", "-q", "-t", key_type, "-N", "", "-f", str(_key(ctx))]
        if comment:
            command += ["-C", comment]
        _require(ctx.run(command))

    return ProvisioningStep(
        name="generate-ssh-key",
        run=run,
        check=check,
        description=f"Generate {key_type} SSH key",
    )
