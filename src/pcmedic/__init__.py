"""PCMedic - machine-health diagnosis with guarded, audited repair."""

from pcmedic._version import __version__
from pcmedic.investigate import DiagnosticSession, PlaybookOrchestrator
from pcmedic.safety import SafetyGuard

__all__ = [
    "__version__",
    "DiagnosticSession",
    "PlaybookOrchestrator",
    "SafetyGuard",
]
