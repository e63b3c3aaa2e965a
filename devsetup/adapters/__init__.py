"""Adapters — the boundary between provisioning steps and the host.

Public re-exports for convenient access.
"""

from devsetup.adapters.base import CommandResult, CommandRunner
from devsetup.adapters.mock import MockRunner
from devsetup.adapters.shell import SubprocessRunner

__all__ = [
    "CommandResult",
    "CommandRunner",
    "MockRunner",
    "SubprocessRunner",
]
