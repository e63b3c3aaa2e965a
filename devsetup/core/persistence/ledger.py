"""
Run ledger — append-only history of provisioning runs.

Every run appends one entry to an NDJSON (newline-delimited JSON) file
under ``${XDG_STATE_HOME:-~/.local/state}/devsetup/``. Entries are never
modified or deleted; ``devsetup history`` reads them back.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from devsetup.core.models.environment import HostPaths
from devsetup.core.models.step import RunReport

logger = logging.getLogger(__name__)

LEDGER_DIR = "devsetup"
LEDGER_FILE = "runs.ndjson"


class LedgerEntry(BaseModel):
    """A single run summary."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    environment: str = ""
    backend: str = ""
    status: str = ""               # ok, partial, failed
    dry_run: bool = False
    steps_total: int = 0
    steps_succeeded: int = 0
    steps_skipped: int = 0
    steps_failed: int = 0
    failed_step: str | None = None
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: RunReport, run_id: str = "", dry_run: bool = False) -> LedgerEntry:
        failed = report.failed_step
        return cls(
            run_id=run_id or generate_run_id(),
            environment=report.environment,
            backend=report.backend,
            status=report.status,
            dry_run=dry_run,
            steps_total=report.total,
            steps_succeeded=report.succeeded,
            steps_skipped=report.skipped,
            steps_failed=report.failed,
            failed_step=failed.step if failed else None,
            errors=[f"{r.step}: {r.reason}" for r in report.records if r.failed],
        )


def default_ledger_path(paths: HostPaths) -> Path:
    return paths.xdg_state_home / LEDGER_DIR / LEDGER_FILE


class RunLedger:
    """Append-only ledger writer/reader."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: LedgerEntry) -> None:
        """Append an entry. A ledger that cannot be written is logged, not fatal."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Ledger entry written: %s", entry.run_id)
        except OSError as e:
            logger.error("Failed to write run ledger %s: %s", self._path, e)

    def read_all(self) -> list[LedgerEntry]:
        """All entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries: list[LedgerEntry] = []
        with self._path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(LedgerEntry.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        return entries

    def read_recent(self, n: int = 10) -> list[LedgerEntry]:
        return self.read_all()[-n:] if n > 0 else []


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    return f"run-{now}-{uuid.uuid4().hex[:6]}"
