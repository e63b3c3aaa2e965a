"""
Verification — query the version of each expected tool.

Advisory only: a missing tool is reported as absent, never raised.
Every tool is queried, whatever happened to the ones before it.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel

from devsetup.adapters.base import CommandRunner

logger = logging.getLogger(__name__)

VERSION_COMMANDS: dict[str, tuple[list[str], str]] = {
    "git":        (["git", "--version"],        r"git version\s+(\d+\.\d+(?:\.\d+)?)"),
    "node":       (["node", "--version"],       r"v(\d+\.\d+\.\d+)"),
    "npm":        (["npm", "--version"],        r"(\d+\.\d+\.\d+)"),
    "nvim":       (["nvim", "--version"],       r"NVIM\s+v?(\d+\.\d+\.\d+\S*)"),
    "zsh":        (["zsh", "--version"],        r"zsh\s+(\d+\.\d+(?:\.\d+)?)"),
    "curl":       (["curl", "--version"],       r"curl\s+(\d+\.\d+\.\d+)"),
    "wget":       (["wget", "--version"],       r"Wget\s+(\d+\.\d+(?:\.\d+)?)"),
    "clang":      (["clang", "--version"],      r"clang version\s+(\d+\.\d+\.\d+)"),
    "make":       (["make", "--version"],       r"Make\s+(\d+\.\d+(?:\.\d+)?)"),
    "ssh":        (["ssh", "-V"],               r"OpenSSH_(\S+?)[,\s]"),
    "proot":      (["proot", "--version"],      r"v(\d+\.\d+\.\d+)"),
}


class ToolStatus(BaseModel):
    """Verification result for one tool."""

    tool: str
    version: str | None = None      # None = absent
    path: str | None = None

    @property
    def present(self) -> bool:
        return self.path is not None


def get_tool_version(tool: str, runner: CommandRunner) -> ToolStatus:
    """Locate ``tool`` and query its version.

    Uses ``VERSION_COMMANDS`` for known tools; anything else is asked
    for ``--version`` and reported by the first line of output.
    """
    entry = VERSION_COMMANDS.get(tool)
    cmd, pattern = entry if entry else ([tool, "--version"], None)

    path = runner.which(cmd[0])
    if not path:
        return ToolStatus(tool=tool)

    result = runner.run(cmd, timeout=10)
    # Some tools (ssh -V) print their version on stderr
    output = result.stdout + "\n" + result.stderr
    if pattern:
        match = re.search(pattern, output)
        if match:
            return ToolStatus(tool=tool, version=match.group(1), path=path)
    return ToolStatus(tool=tool, version=result.first_line or "unknown", path=path)


def verify(tools: list[str], runner: CommandRunner) -> list[ToolStatus]:
    """Query every tool in order. Never raises for a missing tool."""
    results: list[ToolStatus] = []
    seen: set[str] = set()
    for tool in tools:
        if tool in seen:
            continue
        seen.add(tool)
        status = get_tool_version(tool, runner)
        if status.present:
            logger.info("%s %s", tool, status.version)
        else:
            logger.warning("%s not found", tool)
        results.append(status)
    return results
