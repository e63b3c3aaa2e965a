"""
Package backend resolution — map the detected environment to its package manager.

Only two hosts are supported. Anything else is a configuration error
raised before a single step runs; there is no partial backend.
"""

from __future__ import annotations

import logging

from devsetup.core.config.loader import ConfigError
from devsetup.core.models.backend import PackageBackend, Prerequisite
from devsetup.core.models.environment import EnvironmentKind

logger = logging.getLogger(__name__)


class UnsupportedEnvironmentError(ConfigError):
    """The host is not one we know how to provision."""

    def __init__(self, kind: EnvironmentKind):
        self.kind = kind
        super().__init__(
            f"Unsupported environment: {kind.label}. "
            "Run from Termux, or from an Ubuntu guest installed with proot-distro."
        )


TERMUX_BACKEND = PackageBackend(
    name="pkg",
    update_command=["pkg", "update", "-y"],
    install_command=["pkg", "install", "-y"],
)

UBUNTU_BACKEND = PackageBackend(
    name="apt",
    update_command=["apt-get", "update", "-y"],
    install_command=["apt-get", "install", "-y"],
    prerequisite=Prerequisite(tool="sudo", package="sudo"),
    env={"DEBIAN_FRONTEND": "noninteractive"},
)

_BACKENDS: dict[EnvironmentKind, PackageBackend] = {
    EnvironmentKind.TERMUX: TERMUX_BACKEND,
    EnvironmentKind.UBUNTU_PROOT: UBUNTU_BACKEND,
}


def resolve_backend(kind: EnvironmentKind) -> PackageBackend:
    """Select the package backend for ``kind``.

    Raises:
        UnsupportedEnvironmentError: For ``other-proot`` and ``unknown``.
    """
    if not kind.supported:
        raise UnsupportedEnvironmentError(kind)
    backend = _BACKENDS[kind]
    logger.debug("Package backend for %s: %s", kind.value, backend.name)
    return backend.model_copy(deep=True)
