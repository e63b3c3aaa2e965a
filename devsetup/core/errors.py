"""
Step error taxonomy.

Steps signal failure by raising a ``StepError``. The sequencer catches
it, records the step as failed, and decides whether the run continues.
Configuration problems (including an unsupported host) are a separate
family rooted at ``devsetup.core.config.loader.ConfigError``.
"""

from __future__ import annotations

from devsetup.adapters.base import CommandResult


class StepError(Exception):
    """A provisioning step could not complete.

    Attributes:
        step: Name of the failing step (filled in by the sequencer when
            the raiser does not know it).
        reason: Human-readable cause.
        hint: Optional recovery advice shown to the user.
    """

    def __init__(self, reason: str, *, step: str = "", hint: str | None = None):
        super().__init__(reason)
        self.reason = reason
        self.step = step
        self.hint = hint

    def __str__(self) -> str:
        if self.step:
            return f"{self.step}: {self.reason}"
        return self.reason


class CommandFailed(StepError):
    """An external command exited unsuccessfully."""

    def __init__(
        self,
        command: list[str],
        returncode: int,
        detail: str = "",
        *,
        step: str = "",
        hint: str | None = None,
    ):
        self.command = command
        self.returncode = returncode
        self.detail = detail
        reason = f"`{' '.join(command)}` failed (exit {returncode})"
        if detail:
            reason = f"{reason}: {detail}"
        super().__init__(reason, step=step, hint=hint)

    @classmethod
    def from_result(
        cls,
        result: CommandResult,
        *,
        step: str = "",
        hint: str | None = None,
    ) -> CommandFailed:
        return cls(
            result.command,
            result.returncode,
            result.summary,
            step=step,
            hint=hint,
        )


class PreconditionUnmet(StepError):
    """Something the step depends on is missing (a file, a directory, a tool)."""
