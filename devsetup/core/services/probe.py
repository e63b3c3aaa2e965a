"""
Environment probe — classify the host as Termux, a proot guest, or neither.

Read-only. No single signal is trustworthy (environment variables can be
absent or inherited, marker files differ between proot versions), so the
probe layers several independent heuristics:

    Termux markers    TERMUX_VERSION, or $PREFIX with its ``bin/pkg``
    proot signals     (a) a ``proot`` process in our ancestry or as tracer
                      (b) proot marker: faked /proc/version, PROOT_* env, /.proot
                      (c) inode of ``/`` differs from the root of PID 1
                      (d) bind-mount evidence in mountinfo (last resort)
    distribution      /etc/os-release + the apt tooling

Policy: a Termux process counts as ``termux`` only when NO proot signal
fires. Any proot signal wins, and an unrecognised guest fails closed as
``other-proot``.

All host locations are constructor arguments so the heuristics can be
exercised against a fake tree in tests.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Mapping
from pathlib import Path

from pydantic import BaseModel, Field

from devsetup.core.models.environment import TERMUX_PREFIX, EnvironmentKind

logger = logging.getLogger(__name__)

PROOT_ENV_VARS = ("PROOT_TMP_DIR", "PROOT_LOADER")
PROOT_MARKER_FILES = (".proot",)
_MAX_ANCESTRY = 128


class ProbeSignals(BaseModel):
    """Raw findings behind a classification."""

    termux_env: bool = False
    termux_prefix: bool = False
    proot_ancestor: str | None = None     # e.g. "proot (pid 812)"
    proot_marker: str | None = None       # e.g. "/proc/version"
    root_inode_mismatch: bool = False
    bind_mounts: bool = False
    os_id: str = ""
    os_id_like: list[str] = Field(default_factory=list)
    apt_available: bool = False

    @property
    def termux_marker(self) -> bool:
        return self.termux_env or self.termux_prefix

    @property
    def proot_signal(self) -> bool:
        """Heuristics (a)–(c): each independently sufficient."""
        return bool(self.proot_ancestor or self.proot_marker or self.root_inode_mismatch)

    @property
    def in_container(self) -> bool:
        # Bind-mount evidence only counts when nothing says "native Termux"
        return self.proot_signal or (self.bind_mounts and not self.termux_marker)

    @property
    def is_ubuntu(self) -> bool:
        return self.os_id == "ubuntu" or "ubuntu" in self.os_id_like

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["termux_marker"] = self.termux_marker
        data["in_container"] = self.in_container
        return data


class EnvironmentProbe:
    """Inspect the running host.

    Args:
        environ: Environment variables (default: ``os.environ``).
        root: Filesystem root that absolute host paths are resolved under.
        proc: The procfs mount.
        which: PATH lookup used for the apt courtesy check.
        pid: Process to start the ancestry walk from (default: ourselves).
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        root: Path = Path("/"),
        proc: Path = Path("/proc"),
        which: Callable[[str], str | None] = shutil.which,
        pid: int | None = None,
    ):
        self._environ = os.environ if environ is None else environ
        self._root = Path(root)
        self._proc = Path(proc)
        self._which = which
        self._pid = pid if pid is not None else os.getpid()

    # ── Public API ──────────────────────────────────────────────

    def detect(self) -> EnvironmentKind:
        """Classify the host. Deterministic for a fixed host state."""
        signals = self.signals()
        kind = classify(signals)
        logger.debug("Environment signals: %s", signals.to_dict())
        logger.info("Detected environment: %s", kind.label)
        return kind

    def signals(self) -> ProbeSignals:
        """Collect every heuristic's finding."""
        os_release = self._os_release()
        return ProbeSignals(
            termux_env=bool(self._environ.get("TERMUX_VERSION")),
            termux_prefix=self._termux_prefix(),
            proot_ancestor=self._proot_ancestor(),
            proot_marker=self._proot_marker(),
            root_inode_mismatch=self._root_inode_mismatch(),
            bind_mounts=self._bind_mount_evidence(),
            os_id=os_release.get("ID", "").lower(),
            os_id_like=os_release.get("ID_LIKE", "").lower().split(),
            apt_available=bool(self._which("apt-get") or self._which("apt")),
        )

    # ── Termux markers ──────────────────────────────────────────

    def _termux_prefix(self) -> bool:
        prefix = self._host_path(self._environ.get("PREFIX") or TERMUX_PREFIX)
        return (prefix / "bin" / "pkg").is_file()

    # ── (a) Process ancestry ────────────────────────────────────

    def _proot_ancestor(self) -> str | None:
        """Walk from our pid towards PID 1 looking for a proot process.

        The tracer of the current process is checked too: proot is a
        ptrace-based tool and may not be a direct ancestor.
        """
        own = self._read_status(self._pid)
        if own is None:
            return None

        tracer = _to_int(own.get("TracerPid"))
        if tracer > 0:
            tracer_status = self._read_status(tracer)
            if tracer_status and _is_proot(tracer_status.get("Name", "")):
                return f"{tracer_status['Name']} (tracer pid {tracer})"

        seen: set[int] = set()
        pid, status = self._pid, own
        while status is not None and pid > 1 and pid not in seen and len(seen) < _MAX_ANCESTRY:
            seen.add(pid)
            name = status.get("Name", "")
            if _is_proot(name):
                return f"{name} (pid {pid})"
            pid = _to_int(status.get("PPid"))
            status = self._read_status(pid) if pid > 0 else None

        return None

    def _read_status(self, pid: int) -> dict[str, str] | None:
        try:
            text = (self._proc / str(pid) / "status").read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None
        fields: dict[str, str] = {}
        for line in text.splitlines():
            key, sep, value = line.partition(":")
            if sep:
                fields[key.strip()] = value.strip()
        return fields

    # ── (b) Marker files / kernel interface ─────────────────────

    def _proot_marker(self) -> str | None:
        for var in PROOT_ENV_VARS:
            if self._environ.get(var):
                return f"${var}"

        # proot-distro binds a faked /proc/version into the guest
        try:
            version = (self._proc / "version").read_text(encoding="utf-8", errors="replace")
            if "proot" in version.lower():
                return "/proc/version"
        except OSError:
            pass

        for name in PROOT_MARKER_FILES:
            if (self._root / name).exists():
                return f"/{name}"

        return None

    # ── (c) Root inode comparison ───────────────────────────────

    def _root_inode_mismatch(self) -> bool:
        try:
            ours = os.stat(self._root)
            init = os.stat(self._proc / "1" / "root")
        except OSError:
            # Unreadable without privileges on most hosts: no evidence either way
            return False
        return (ours.st_dev, ours.st_ino) != (init.st_dev, init.st_ino)

    # ── (d) Bind-mount evidence ─────────────────────────────────

    def _bind_mount_evidence(self) -> bool:
        try:
            text = (self._proc / str(self._pid) / "mountinfo").read_text(
                encoding="utf-8", errors="replace",
            )
        except OSError:
            return False
        lowered = text.lower()
        return "com.termux" in lowered or "proot" in lowered

    # ── Distribution ────────────────────────────────────────────

    def _os_release(self) -> dict[str, str]:
        for candidate in ("/etc/os-release", "/usr/lib/os-release"):
            path = self._host_path(candidate)
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            return parse_os_release(text)
        return {}

    def _host_path(self, path: str) -> Path:
        return self._root / path.lstrip("/")


def classify(signals: ProbeSignals) -> EnvironmentKind:
    """Apply the priority order to a set of findings (first match wins)."""
    if signals.termux_marker and not signals.in_container:
        return EnvironmentKind.TERMUX
    if signals.in_container:
        if signals.is_ubuntu and signals.apt_available:
            return EnvironmentKind.UBUNTU_PROOT
        return EnvironmentKind.OTHER_PROOT
    return EnvironmentKind.UNKNOWN


def parse_os_release(text: str) -> dict[str, str]:
    """Parse ``KEY=value`` lines, unquoting values."""
    result: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        result[key.strip()] = value
    return result


def _is_proot(name: str) -> bool:
    return "proot" in name.lower()


def _to_int(value: str | None) -> int:
    try:
        return int((value or "").split()[0])
    except (ValueError, IndexError):
        return 0
