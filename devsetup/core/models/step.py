"""
ProvisioningStep and RunReport — the sequencing contract.

A step is a stateless descriptor: a name, an operation, and an optional
"already satisfied?" check. The sequencer owns order and lifetime and
turns each attempt into a ``StepRecord``. Records accumulate into the
``RunReport`` that the CLI renders and the ledger persists.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from devsetup.core.models.backend import PackageBackend
from devsetup.core.models.environment import HostPaths

if TYPE_CHECKING:
    from devsetup.adapters.base import CommandResult, CommandRunner


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


@dataclass
class StepContext:
    """Everything a step may touch: the backend, the runner, the host paths."""

    backend: PackageBackend
    runner: CommandRunner
    paths: HostPaths
    environ: Mapping[str, str] = field(default_factory=dict)
    timeout: float | None = None
    dry_run: bool = False

    def run(self, command: list[str], **kwargs: Any) -> CommandResult:
        """Shortcut for ``runner.run`` with the configured timeout."""
        kwargs.setdefault("timeout", self.timeout)
        return self.runner.run(command, **kwargs)


StepOperation = Callable[[StepContext], None]
StepCheck = Callable[[StepContext], bool]


@dataclass(frozen=True)
class ProvisioningStep:
    """A named, idempotent unit of work.

    Attributes:
        name: Identifier used in logs and reports.
        run: Performs the work; raises ``StepError`` on failure.
        check: Returns True when the work is already done (step is skipped).
        best_effort: A failure is recorded but does not halt the run.
        description: One-line text for progress output.
    """

    name: str
    run: StepOperation
    check: StepCheck | None = None
    best_effort: bool = False
    description: str = ""

    def is_satisfied(self, ctx: StepContext) -> bool:
        return self.check is not None and bool(self.check(ctx))


StepStatus = Literal["skipped", "succeeded", "failed"]


class StepRecord(BaseModel):
    """Outcome of one step."""

    step: str
    status: StepStatus
    reason: str = ""
    hint: str | None = None
    best_effort: bool = False
    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def marker(self) -> str:
        return {"succeeded": "✓", "failed": "✗", "skipped": "⊘"}[self.status]


class RunReport(BaseModel):
    """Ordered record of a provisioning run."""

    environment: str = ""
    backend: str = ""
    records: list[StepRecord] = Field(default_factory=list)
    halted: bool = False
    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = ""

    def add(self, record: StepRecord) -> None:
        self.records.append(record)

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.records if r.status == "succeeded")

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.records if r.status == "skipped")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.records if r.failed)

    @property
    def failed_step(self) -> StepRecord | None:
        """The record that halted the run, if any."""
        if not self.halted:
            return None
        for record in reversed(self.records):
            if record.failed and not record.best_effort:
                return record
        return None

    @property
    def ok(self) -> bool:
        return not self.halted

    @property
    def status(self) -> str:
        if self.halted:
            return "failed"
        if self.failed:
            return "partial"
        return "ok"

    def outcomes(self) -> list[tuple[str, str]]:
        """``(step, status)`` pairs in execution order."""
        return [(r.step, r.status) for r in self.records]

    def to_dict(self) -> dict:
        failed = self.failed_step
        return {
            "environment": self.environment,
            "backend": self.backend,
            "status": self.status,
            "halted": self.halted,
            "failed_step": failed.step if failed else None,
            "total": self.total,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "records": [r.model_dump(mode="json") for r in self.records],
        }
