"""
Provision use case — the full run, from host detection to verification.

Flow:
    detect environment → resolve backend → build plan → sequence steps
    → append to ledger → verify tools

Plan order matters. The package step installs zsh/curl/neovim for
everything after it. The shell framework creates ``.zshrc`` before the
terminal step edits it. The plugin manager lands before plugins are
installed.

The two editor finalisation steps run sequentially by default. With
``parallel_finalize`` they overlap, which is only safe once
nvim-treesitter is already installed: on a fresh host parser compilation
would start before the plugin install has cloned it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from devsetup.adapters.base import CommandRunner
from devsetup.adapters.mock import MockRunner
from devsetup.adapters.shell import SubprocessRunner
from devsetup.core.config.loader import ConfigError
from devsetup.core.data import load_init_template
from devsetup.core.engine.sequencer import Sequencer, parallel
from devsetup.core.models.backend import PackageBackend
from devsetup.core.models.config import SetupConfig
from devsetup.core.models.environment import EnvironmentKind, HostPaths
from devsetup.core.models.step import ProvisioningStep, RunReport
from devsetup.core.persistence.ledger import (
    LedgerEntry,
    RunLedger,
    default_ledger_path,
    generate_run_id,
)
from devsetup.core.services import steps as catalogue
from devsetup.core.services.backends import resolve_backend
from devsetup.core.services.probe import EnvironmentProbe
from devsetup.core.services.verify import ToolStatus, verify

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STEP_FAILED = 1
EXIT_CONFIG = 2


def build_plan(
    kind: EnvironmentKind,
    backend: PackageBackend,
    config: SetupConfig,
    editor_template: str,
) -> list[ProvisioningStep]:
    """Ordered step list for a supported environment."""
    termux = kind is EnvironmentKind.TERMUX
    plan: list[ProvisioningStep] = []

    if backend.prerequisite is not None:
        plan.append(catalogue.prepare_backend_step())

    packages = config.packages.termux if termux else config.packages.ubuntu
    plan.append(catalogue.install_packages_step(packages))

    if termux and config.distro:
        plan.append(catalogue.install_distro_step(config.distro))

    plan += [
        catalogue.install_shell_framework_step(config.shell.framework_url),
        catalogue.set_default_shell_step(config.shell.default_shell, termux=termux),
        catalogue.configure_terminal_step(
            config.terminal.properties,
            config.shell.rc_exports,
            termux=termux,
        ),
        catalogue.install_plugin_manager_step(config.editor.plug_url),
        catalogue.configure_editor_step(editor_template, overwrite=config.editor.overwrite),
    ]

    plugins = catalogue.install_editor_plugins_step()
    parsers = catalogue.compile_parsers_step()
    if config.parallel_finalize:
        plan.append(parallel("finalize-editor", plugins, parsers))
    else:
        plan += [plugins, parsers]

    if config.git.enabled:
        plan.append(catalogue.configure_git_step(config.git.name, config.git.email))

    if config.ssh.generate:
        plan.append(catalogue.generate_ssh_key_step(
            config.ssh.key_type,
            config.ssh.comment or config.git.email,
        ))

    return plan


@dataclass
class ProvisionResult:
    """Outcome of a provisioning run."""

    environment: EnvironmentKind | None = None
    backend: PackageBackend | None = None
    report: RunReport | None = None
    verification: list[ToolStatus] = field(default_factory=list)
    run_id: str = ""
    dry_run: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.report is not None and self.report.ok

    @property
    def exit_code(self) -> int:
        if self.error is not None:
            return EXIT_CONFIG
        if self.report is None or not self.report.ok:
            return EXIT_STEP_FAILED
        return EXIT_OK

    def to_dict(self) -> dict:
        result: dict = {
            "run_id": self.run_id,
            "dry_run": self.dry_run,
            "environment": self.environment.value if self.environment else None,
            "backend": self.backend.name if self.backend else None,
        }
        if self.error:
            result["error"] = self.error
            return result
        if self.report:
            result["report"] = self.report.to_dict()
        result["verification"] = [s.model_dump(mode="json") for s in self.verification]
        return result


def run_provisioning(
    config: SetupConfig | None = None,
    *,
    probe: EnvironmentProbe | None = None,
    runner: CommandRunner | None = None,
    environ: Mapping[str, str] | None = None,
    dry_run: bool = False,
    ledger: RunLedger | None = None,
) -> ProvisionResult:
    """Provision the current host.

    Args:
        config: Settings (default: built-in defaults).
        probe: Environment probe (default: the real host).
        runner: Command runner for steps (default: subprocess, or a
            recording mock when ``dry_run``).
        environ: Environment for path resolution (default: ``os.environ``).
        dry_run: Record commands instead of executing them.
        ledger: Run ledger (default: under ``$XDG_STATE_HOME``).

    Returns:
        ProvisionResult. Never raises for an unsupported host or a
        failing step; both are reported in the result.
    """
    config = config or SetupConfig()
    env = dict(os.environ if environ is None else environ)
    paths = HostPaths.from_environ(env)
    result = ProvisionResult(run_id=generate_run_id(), dry_run=dry_run)

    # ── Detect + resolve ─────────────────────────────────────────
    probe = probe or EnvironmentProbe(environ=env)
    kind = probe.detect()
    result.environment = kind

    try:
        backend = resolve_backend(kind)
        template = _editor_template(config)
    except ConfigError as e:
        logger.error("%s", e)
        result.error = str(e)
        return result
    result.backend = backend

    # ── Sequence ─────────────────────────────────────────────────
    if runner is None:
        runner = MockRunner() if dry_run else SubprocessRunner(config.command_timeout)

    plan = build_plan(kind, backend, config, template)
    logger.info("Provisioning %s with %d steps (backend: %s)", kind.label, len(plan), backend.name)

    sequencer = Sequencer(
        runner,
        paths=paths,
        environ=env,
        timeout=config.command_timeout or None,
        dry_run=dry_run,
    )
    report = sequencer.run(plan, backend, environment=kind.value)
    result.report = report

    # ── Persist ──────────────────────────────────────────────────
    ledger = ledger or RunLedger(default_ledger_path(paths))
    ledger.write(LedgerEntry.from_report(report, run_id=result.run_id, dry_run=dry_run))

    if report.halted:
        return result

    # ── Verify ───────────────────────────────────────────────────
    # Read-only, so a dry run still queries the real host
    verify_runner = SubprocessRunner(10) if dry_run else runner
    result.verification = verify(config.verify.tools, verify_runner)
    return result


def _editor_template(config: SetupConfig) -> str:
    try:
        return load_init_template(config.editor.init_template)
    except OSError as e:
        raise ConfigError(f"Cannot read editor template {config.editor.init_template}: {e}") from e
