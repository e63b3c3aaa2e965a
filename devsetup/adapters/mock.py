"""
Mock runner — records commands instead of executing them.

Used for ``devsetup run --dry-run`` and as the universal test double.
By default every command succeeds. Individual programs can be made to
fail, or given a handler that simulates their side effects.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from devsetup.adapters.base import CommandResult, CommandRunner

Handler = Callable[[list[str]], CommandResult | None]


@dataclass
class RecordedCall:
    command: list[str]
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None

    @property
    def program(self) -> str:
        return self.command[0] if self.command else ""


class MockRunner(CommandRunner):
    """Command runner that never touches the host.

    Args:
        installed: Programs ``which()`` reports as present. ``None`` means
            every program is present.
        default_output: stdout returned by successful calls.
    """

    def __init__(
        self,
        installed: set[str] | None = None,
        default_output: str = "",
    ):
        self._installed = installed
        self._default_output = default_output
        self._handlers: dict[str, Handler] = {}
        self._calls: list[RecordedCall] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def calls(self) -> list[RecordedCall]:
        """Every call this runner has received, in order."""
        return self._calls

    @property
    def call_count(self) -> int:
        return len(self._calls)

    def commands(self) -> list[list[str]]:
        return [c.command for c in self._calls]

    def set_handler(self, program: str, handler: Handler) -> None:
        """Route calls to ``program`` through ``handler``.

        A handler returning None yields the default success result.
        """
        self._handlers[program] = handler

    def set_failure(
        self,
        program: str,
        returncode: int = 1,
        stderr: str = "mock failure",
    ) -> None:
        """Configure every call to ``program`` to fail."""
        def _fail(command: list[str]) -> CommandResult:
            return CommandResult(command=command, returncode=returncode, stderr=stderr)
        self._handlers[program] = _fail

    def set_output(self, program: str, stdout: str) -> None:
        """Configure a successful call to ``program`` to print ``stdout``."""
        def _out(command: list[str]) -> CommandResult:
            return CommandResult(command=command, stdout=stdout)
        self._handlers[program] = _out

    def install(self, program: str) -> None:
        """Mark ``program`` as present on PATH."""
        if self._installed is not None:
            self._installed.add(program)

    def which(self, program: str) -> str | None:
        if self._installed is None or program in self._installed:
            return f"/usr/bin/{program}"
        return None

    def run(
        self,
        command: list[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        self._calls.append(RecordedCall(command=list(command), env=dict(env or {}), cwd=cwd))

        handler = self._handlers.get(command[0] if command else "")
        if handler is not None:
            result = handler(list(command))
            if result is not None:
                return result

        return CommandResult(command=list(command), stdout=self._default_output)

    def reset(self) -> None:
        """Clear call log and handlers."""
        self._calls.clear()
        self._handlers.clear()
