"""
Subprocess runner — the SINGLE PLACE where external commands are spawned.

Every package-manager call, remote installer, headless editor run and
version query goes through ``SubprocessRunner.run``. Output is captured,
written to the debug log, and returned in a ``CommandResult``.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from collections.abc import Mapping

from devsetup.adapters.base import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

# Tail kept in the result; the full output goes to the log
_OUTPUT_TAIL = 4000


class SubprocessRunner(CommandRunner):
    """Run commands with ``subprocess.run`` and capture their output.

    Args:
        default_timeout: Seconds before a command is abandoned. ``None``
            (or 0) blocks until the command exits.
    """

    def __init__(self, default_timeout: float | None = None):
        self._default_timeout = default_timeout or None

    @property
    def name(self) -> str:
        return "subprocess"

    def which(self, program: str) -> str | None:
        return shutil.which(program)

    def run(
        self,
        command: list[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        timeout = timeout or self._default_timeout

        # ── Environment ──
        full_env = os.environ.copy()
        if env:
            for key, value in env.items():
                full_env[key] = os.path.expandvars(value)

        logger.debug("$ %s", " ".join(command))
        start = time.monotonic()

        try:
            proc = subprocess.run(
                command,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
                env=full_env,
                cwd=cwd,
            )
        except FileNotFoundError:
            return CommandResult(
                command=command,
                returncode=127,
                error=f"command not found: {command[0]}",
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=command,
                returncode=-1,
                error=f"command timed out after {timeout:g}s",
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        except OSError as e:
            return CommandResult(
                command=command,
                returncode=-1,
                error=f"cannot execute {command[0]}: {e}",
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = proc.stdout or ""
        stderr = proc.stderr or ""

        for line in stdout.splitlines():
            logger.debug("  | %s", line)
        for line in stderr.splitlines():
            logger.debug("  ! %s", line)

        if proc.returncode != 0:
            logger.debug("exit %d after %dms: %s", proc.returncode, elapsed_ms, command[0])

        return CommandResult(
            command=command,
            returncode=proc.returncode,
            stdout=stdout[-_OUTPUT_TAIL:],
            stderr=stderr[-_OUTPUT_TAIL:],
            duration_ms=elapsed_ms,
        )
