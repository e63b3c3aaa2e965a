"""
PackageBackend — the package manager selected for this run.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Prerequisite(BaseModel):
    """A tool the backend needs before it can be used, and the package providing it."""

    tool: str
    package: str


class PackageBackend(BaseModel):
    """Update/install command templates bound to one environment kind."""

    name: str
    update_command: list[str]
    install_command: list[str]
    prerequisite: Prerequisite | None = None
    env: dict[str, str] = Field(default_factory=dict)

    def install_command_for(self, packages: list[str]) -> list[str]:
        """Install template with package names appended."""
        return [*self.install_command, *packages]
