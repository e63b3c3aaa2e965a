"""
Detect use case — report what the probe sees without changing anything.
"""

from __future__ import annotations

from dataclasses import dataclass

from devsetup.core.models.backend import PackageBackend
from devsetup.core.models.environment import EnvironmentKind
from devsetup.core.services.backends import UnsupportedEnvironmentError, resolve_backend
from devsetup.core.services.probe import EnvironmentProbe, ProbeSignals, classify


@dataclass
class DetectResult:
    kind: EnvironmentKind
    signals: ProbeSignals
    backend: PackageBackend | None = None
    error: str | None = None

    @property
    def supported(self) -> bool:
        return self.kind.supported and self.backend is not None

    def to_dict(self) -> dict:
        return {
            "environment": self.kind.value,
            "label": self.kind.label,
            "supported": self.supported,
            "backend": self.backend.model_dump(mode="json") if self.backend else None,
            "signals": self.signals.to_dict(),
            "error": self.error,
        }


def detect(probe: EnvironmentProbe | None = None) -> DetectResult:
    """Classify the host and resolve its backend, if it has one."""
    probe = probe or EnvironmentProbe()
    signals = probe.signals()
    kind = classify(signals)
    result = DetectResult(kind=kind, signals=signals)
    try:
        result.backend = resolve_backend(kind)
    except UnsupportedEnvironmentError as e:
        result.error = str(e)
    return result
