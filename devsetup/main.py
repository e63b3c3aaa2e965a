"""
devsetup — CLI entrypoint.

Usage:
    devsetup                 # detect, provision, verify
    devsetup run --dry-run
    devsetup detect --json
    devsetup verify
    devsetup history
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from devsetup import __version__
from devsetup.core.observability.logging_config import setup_logging


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="devsetup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to devsetup.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """devsetup — bootstrap a terminal dev environment on Termux or a proot Ubuntu guest.

    With no command, runs the full provisioning sequence.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


def _configure_logging(ctx: click.Context, default: str, log_dir: str | None = None) -> None:
    """Resolve the console level (flag > DEVSETUP_LOG_LEVEL > default) and set up logging."""
    if ctx.obj.get("debug"):
        level = "DEBUG"
    elif ctx.obj.get("verbose"):
        level = "INFO"
    elif ctx.obj.get("quiet"):
        level = "ERROR"
    else:
        level = os.environ.get("DEVSETUP_LOG_LEVEL", default)
    setup_logging(level=level, log_dir=log_dir)


def _load_config(ctx: click.Context):
    """Load config or exit 2 with a diagnostic."""
    from devsetup.core.config.loader import ConfigError, load_config

    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(2)


# ── Run ─────────────────────────────────────────────────────────


@cli.command()
@click.option("--dry-run", is_flag=True, help="Record commands without executing them.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(ctx: click.Context, dry_run: bool, as_json: bool) -> None:
    """Detect the host, provision it, and verify the result."""
    from devsetup.core.use_cases.provision import run_provisioning

    config = _load_config(ctx)
    log_dir = os.environ.get("DEVSETUP_LOG_DIR") or config.log_dir
    _configure_logging(ctx, "WARNING" if as_json else "INFO", log_dir=log_dir)

    result = run_provisioning(config, dry_run=dry_run)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(result.exit_code)

    report = result.report
    assert report is not None  # guaranteed when there is no error
    quiet = ctx.obj.get("quiet", False)

    if not quiet:
        title = "📋 Provisioning" + (" (dry run)" if dry_run else "")
        click.secho(f"\n{title}: {result.environment.label}", fg="cyan", bold=True)
        click.echo(f"   Backend: {report.backend}")
        click.echo()
        for record in report.records:
            color = {"succeeded": "green", "skipped": "white", "failed": "red"}[record.status]
            click.echo(f"   {record.marker} {record.step:<26} ", nl=False)
            click.secho(record.status, fg=color)
            if record.failed and record.best_effort:
                click.secho(f"      ⚠️  {record.reason} (best-effort)", fg="yellow")

    failed = report.failed_step
    if failed is not None:
        click.echo()
        click.secho(f"❌ Provisioning stopped at {failed.step}: {failed.reason}", fg="red", err=True)
        if failed.hint:
            click.secho(f"   💡 {failed.hint}", fg="yellow", err=True)
        click.echo(f"   Logs: {Path(log_dir) / 'setup_output.log'}, {Path(log_dir) / 'setup_errors.log'}", err=True)
        sys.exit(result.exit_code)

    click.echo()
    click.secho("✅ Installation complete!", fg="green", bold=True)
    _render_verification(result.verification)

    if not quiet:
        click.echo()
        click.secho("Next steps:", fg="yellow", bold=True)
        for i, line in enumerate(_next_steps(result.environment, config.distro), start=1):
            click.echo(f"   {i}. {line}")
        click.echo()

    sys.exit(result.exit_code)


def _next_steps(kind, distro: str | None) -> list[str]:
    from devsetup.core.models.environment import EnvironmentKind

    if kind is EnvironmentKind.TERMUX:
        lines = ["Restart the Termux session", "Start Neovim: nvim"]
        if distro:
            lines.append(f"Access {distro}: proot-distro login {distro}")
        return lines
    return ["Open a new shell (or run: exec zsh)", "Start Neovim: nvim"]


def _render_verification(statuses) -> None:
    click.secho("   Versions:", fg="white", bold=True)
    for status in statuses:
        if status.present:
            click.echo(f"     ✅ {status.tool:<8} {status.version}")
        else:
            click.secho(f"     ❌ {status.tool:<8} not found", fg="red")


# ── Detect ──────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def detect(ctx: click.Context, as_json: bool) -> None:
    """Show how this host is classified, and why."""
    from devsetup.core.use_cases.detect import detect as detect_host

    _configure_logging(ctx, "WARNING")
    result = detect_host()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.supported else 2)

    icon = "✅" if result.supported else "❌"
    click.secho(f"{icon} {result.kind.label}", fg="green" if result.supported else "red", bold=True)
    if result.backend:
        click.echo(f"   Backend:  {result.backend.name}")
        click.echo(f"   Update:   {' '.join(result.backend.update_command)}")
        click.echo(f"   Install:  {' '.join(result.backend.install_command)} <packages>")

    s = result.signals
    click.echo()
    click.secho("   Signals:", fg="white", bold=True)
    click.echo(f"     TERMUX_VERSION set:   {'yes' if s.termux_env else 'no'}")
    click.echo(f"     Termux prefix:        {'yes' if s.termux_prefix else 'no'}")
    click.echo(f"     proot ancestor:       {s.proot_ancestor or '—'}")
    click.echo(f"     proot marker:         {s.proot_marker or '—'}")
    click.echo(f"     root inode mismatch:  {'yes' if s.root_inode_mismatch else 'no'}")
    click.echo(f"     bind mounts:          {'yes' if s.bind_mounts else 'no'}")
    click.echo(f"     distribution:         {s.os_id or '—'}")

    if result.error:
        click.echo()
        click.secho(f"   {result.error}", fg="red")
        sys.exit(2)


# ── Verify ──────────────────────────────────────────────────────


@cli.command()
@click.option("--tool", "-t", "tools", multiple=True, help="Tool to check (repeatable).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def verify(ctx: click.Context, tools: tuple[str, ...], as_json: bool) -> None:
    """Report the installed version of each expected tool."""
    from devsetup.adapters.shell import SubprocessRunner
    from devsetup.core.services.verify import verify as verify_tools

    config = _load_config(ctx)
    _configure_logging(ctx, "WARNING")
    statuses = verify_tools(list(tools) or config.verify.tools, SubprocessRunner(10))

    if as_json:
        click.echo(json.dumps([s.model_dump(mode="json") for s in statuses], indent=2))
        return

    _render_verification(statuses)


# ── History ─────────────────────────────────────────────────────


@cli.command()
@click.option("-n", "count", default=10, show_default=True, help="Number of runs to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, count: int, as_json: bool) -> None:
    """Show recent provisioning runs."""
    from devsetup.core.models.environment import HostPaths
    from devsetup.core.persistence.ledger import RunLedger, default_ledger_path

    _configure_logging(ctx, "WARNING")
    ledger = RunLedger(default_ledger_path(HostPaths.from_environ(os.environ)))
    entries = ledger.read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.secho("No runs recorded yet.", fg="yellow")
        return

    for entry in entries:
        color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(entry.status, "white")
        click.echo(f"   {entry.timestamp[:19]}  {entry.environment:<13} ", nl=False)
        click.secho(f"{entry.status:<8}", fg=color, nl=False)
        detail = f"{entry.steps_succeeded} done, {entry.steps_skipped} skipped"
        if entry.failed_step:
            detail += f", stopped at {entry.failed_step}"
        if entry.dry_run:
            detail += " (dry run)"
        click.echo(f" {detail}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
