"""
Sequencer — the provisioning loop.

Runs steps strictly in the given order against one package backend:

    for each step:
        check says "already done"  → skipped (no side effects)
        run raises StepError       → failed; halt unless best-effort
        otherwise                  → succeeded

The sequencer never raises for a failing step. A halted run comes back
as a ``RunReport`` with ``halted=True`` and the failing record last, so
callers decide exit behaviour. Nothing is retried.
"""

from __future__ import annotations

import concurrent.futures
import logging
import os
import time
from collections.abc import Mapping
from datetime import UTC, datetime

from devsetup.adapters.base import CommandRunner
from devsetup.core.errors import StepError
from devsetup.core.models.backend import PackageBackend
from devsetup.core.models.environment import HostPaths
from devsetup.core.models.step import (
    ProvisioningStep,
    RunReport,
    StepContext,
    StepRecord,
)

logger = logging.getLogger(__name__)


class Sequencer:
    """Execute ProvisioningSteps in order.

    Args:
        runner: Command runner handed to every step.
        paths: Host paths (default: derived from ``environ``).
        environ: Environment visible to steps (default: ``os.environ``).
        timeout: Per-command timeout in seconds (None blocks).
        dry_run: Steps log the files they would write instead of writing them.
    """

    def __init__(
        self,
        runner: CommandRunner,
        paths: HostPaths | None = None,
        environ: Mapping[str, str] | None = None,
        timeout: float | None = None,
        dry_run: bool = False,
    ):
        self._runner = runner
        self._environ = dict(os.environ if environ is None else environ)
        self._paths = paths or HostPaths.from_environ(self._environ)
        self._timeout = timeout
        self._dry_run = dry_run

    def context(self, backend: PackageBackend) -> StepContext:
        return StepContext(
            backend=backend,
            runner=self._runner,
            paths=self._paths,
            environ=self._environ,
            timeout=self._timeout,
            dry_run=self._dry_run,
        )

    def run(
        self,
        steps: list[ProvisioningStep],
        backend: PackageBackend,
        environment: str = "",
    ) -> RunReport:
        """Run ``steps`` in order and return the accumulated report."""
        ctx = self.context(backend)
        report = RunReport(environment=environment, backend=backend.name)

        for index, step in enumerate(steps, start=1):
            logger.info("[%d/%d] %s", index, len(steps), step.description or step.name)
            record = execute_step(step, ctx)
            report.add(record)

            logger.info("%s %s → %s", record.marker, step.name, record.status)

            if record.failed:
                if step.best_effort:
                    logger.warning("%s failed (best-effort, continuing): %s", step.name, record.reason)
                    continue
                logger.error("%s failed: %s", step.name, record.reason)
                report.halted = True
                break

        report.ended_at = datetime.now(UTC).isoformat()
        return report


def execute_step(step: ProvisioningStep, ctx: StepContext) -> StepRecord:
    """Check, run and time a single step. Never raises."""
    start = time.monotonic()

    def _record(status: str, reason: str = "", hint: str | None = None) -> StepRecord:
        return StepRecord(
            step=step.name,
            status=status,
            reason=reason,
            hint=hint,
            best_effort=step.best_effort,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    try:
        if step.is_satisfied(ctx):
            return _record("skipped", "already satisfied")
        step.run(ctx)
    except StepError as e:
        if not e.step:
            e.step = step.name
        return _record("failed", e.reason, e.hint)
    except Exception as e:
        # Steps should only raise StepError; anything else is a bug in the step
        logger.exception("Step %s raised unexpectedly", step.name)
        return _record("failed", f"unexpected error: {e}")

    return _record("succeeded")


def parallel(name: str, first: ProvisioningStep, second: ProvisioningStep) -> ProvisioningStep:
    """Combine two independent steps into one that runs them concurrently.

    Both are started together and joined before the composite returns.
    Only for steps that share no files; everything else stays ordered.
    The composite fails if either part fails, and is skipped only when
    both parts are already satisfied.
    """
    parts = (first, second)

    def check(ctx: StepContext) -> bool:
        return all(p.is_satisfied(ctx) for p in parts)

    def run(ctx: StepContext) -> None:
        pending = [p for p in parts if not p.is_satisfied(ctx)]
        errors: list[str] = []
        hints: list[str] = []

        with concurrent.futures.ThreadPoolExecutor(max_workers=len(parts)) as pool:
            futures = {pool.submit(p.run, ctx): p for p in pending}
            for future in concurrent.futures.as_completed(futures):
                part = futures[future]
                try:
                    future.result()
                    logger.info("  ✓ %s", part.name)
                except StepError as e:
                    logger.info("  ✗ %s: %s", part.name, e.reason)
                    errors.append(f"{part.name}: {e.reason}")
                    if e.hint:
                        hints.append(e.hint)

        if errors:
            raise StepError("; ".join(sorted(errors)), hint=" ".join(hints) or None)

    return ProvisioningStep(
        name=name,
        run=run,
        check=check,
        best_effort=first.best_effort and second.best_effort,
        description=f"{first.description or first.name} + {second.description or second.name}",
    )
