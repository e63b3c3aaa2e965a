"""
Domain models — host classification, package backend, steps, reports, config.

    from devsetup.core.models import EnvironmentKind, PackageBackend, ProvisioningStep, RunReport
"""

from devsetup.core.models.backend import PackageBackend, Prerequisite
from devsetup.core.models.config import SetupConfig
from devsetup.core.models.environment import EnvironmentKind, HostPaths
from devsetup.core.models.step import (
    ProvisioningStep,
    RunReport,
    StepContext,
    StepRecord,
)

__all__ = [
    "EnvironmentKind",
    "HostPaths",
    "PackageBackend",
    "Prerequisite",
    "ProvisioningStep",
    "RunReport",
    "SetupConfig",
    "StepContext",
    "StepRecord",
]
