"""
Runner base — the contract between provisioning steps and external commands.

Steps never call ``subprocess`` themselves. They hand an argv list to a
``CommandRunner`` and get a ``CommandResult`` back. Runners NEVER raise
for a failing command: non-zero exits, missing binaries and timeouts are
all captured in the result, and the step decides what that means.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping

from pydantic import BaseModel


class CommandResult(BaseModel):
    """Outcome of one external command."""

    command: list[str]
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    error: str | None = None        # spawn failure or timeout (no usable exit code)

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and self.error is None

    @property
    def summary(self) -> str:
        """One line describing why the command failed."""
        if self.error:
            return self.error
        lines = [ln for ln in self.stderr.strip().splitlines() if ln.strip()]
        if lines:
            return lines[-1].strip()
        return f"exit status {self.returncode}"

    @property
    def first_line(self) -> str:
        """First non-empty line of combined output."""
        for line in (self.stdout + "\n" + self.stderr).splitlines():
            if line.strip():
                return line.strip()
        return ""


class CommandRunner(ABC):
    """Abstract base class for command runners.

    To add a runner:
        1. Subclass CommandRunner
        2. Implement name, run, which
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The runner identifier (e.g., 'subprocess', 'mock')."""

    @abstractmethod
    def run(
        self,
        command: list[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run ``command`` and return its result.

        MUST never raise for a failing command.
        """

    @abstractmethod
    def which(self, program: str) -> str | None:
        """Resolve ``program`` on PATH, or None when it is not installed."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
