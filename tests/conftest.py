"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from devsetup.adapters.mock import MockRunner
from devsetup.core.models.backend import PackageBackend
from devsetup.core.models.environment import HostPaths
from devsetup.core.models.step import StepContext
from devsetup.core.services.backends import TERMUX_BACKEND
from devsetup.core.services.probe import EnvironmentProbe

SELF_PID = 4242


class FakeHost:
    """A fake filesystem root + procfs for exercising the probe."""

    def __init__(self, base: Path):
        self.pid = SELF_PID
        self.root = base / "root"
        self.proc = base / "proc"
        self.root.mkdir()
        self.proc.mkdir()
        self._other_root = base / "elsewhere"
        self.process(SELF_PID, "python3", ppid=1)

    def process(self, pid: int, name: str, ppid: int, tracer: int = 0) -> FakeHost:
        d = self.proc / str(pid)
        d.mkdir(exist_ok=True)
        (d / "status").write_text(
            f"Name:\t{name}\nState:\tS (sleeping)\nTracerPid:\t{tracer}\n"
            f"Pid:\t{pid}\nPPid:\t{ppid}\n"
        )
        return self

    def os_release(self, os_id: str, id_like: str = "") -> FakeHost:
        etc = self.root / "etc"
        etc.mkdir(exist_ok=True)
        lines = [f'NAME="{os_id.title()}"', f"ID={os_id}"]
        if id_like:
            lines.append(f'ID_LIKE="{id_like}"')
        (etc / "os-release").write_text("\n".join(lines) + "\n")
        return self

    def termux_prefix(self, prefix: str = "/data/data/com.termux/files/usr") -> FakeHost:
        bindir = self.root / prefix.lstrip("/") / "bin"
        bindir.mkdir(parents=True, exist_ok=True)
        (bindir / "pkg").write_text("#!/bin/sh\n")
        return self

    def proc_version(self, text: str) -> FakeHost:
        (self.proc / "version").write_text(text)
        return self

    def mountinfo(self, text: str) -> FakeHost:
        (self.proc / str(SELF_PID) / "mountinfo").write_text(text)
        return self

    def init_root(self, same: bool = True) -> FakeHost:
        init = self.proc / "1"
        init.mkdir(exist_ok=True)
        if same:
            target = self.root
        else:
            self._other_root.mkdir(exist_ok=True)
            target = self._other_root
        (init / "root").symlink_to(target, target_is_directory=True)
        return self

    def probe(self, environ: dict[str, str] | None = None, tools: set[str] | None = None) -> EnvironmentProbe:
        available = tools or set()
        return EnvironmentProbe(
            environ=environ or {},
            root=self.root,
            proc=self.proc,
            which=lambda name: f"/usr/bin/{name}" if name in available else None,
            pid=SELF_PID,
        )


@pytest.fixture
def fake_host(tmp_path: Path) -> FakeHost:
    return FakeHost(tmp_path)


@pytest.fixture
def home(tmp_path: Path) -> Path:
    h = tmp_path / "home"
    h.mkdir()
    return h


@pytest.fixture
def environ(home: Path, tmp_path: Path) -> dict[str, str]:
    return {
        "HOME": str(home),
        "PREFIX": str(tmp_path / "prefix"),
        "SHELL": "/bin/bash",
    }


@pytest.fixture
def paths(environ: dict[str, str]) -> HostPaths:
    return HostPaths.from_environ(environ)


@pytest.fixture
def runner() -> MockRunner:
    return MockRunner()


@pytest.fixture
def make_ctx(paths: HostPaths, runner: MockRunner, environ: dict[str, str]):
    """Build a StepContext around the mock runner."""

    def _make(backend: PackageBackend = TERMUX_BACKEND) -> StepContext:
        return StepContext(backend=backend, runner=runner, paths=paths, environ=environ)

    return _make


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging() replaces root handlers; put the originals back."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
