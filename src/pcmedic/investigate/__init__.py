"""Investigation: playbook catalog, orchestrator and diagnostic sessions."""

from pcmedic.investigate.orchestrator import PlaybookOrchestrator
from pcmedic.investigate.playbooks import PLAYBOOKS, get_playbook
from pcmedic.investigate.session import DiagnosticOutcome, DiagnosticSession

__all__ = [
    "DiagnosticOutcome",
    "DiagnosticSession",
    "PLAYBOOKS",
    "PlaybookOrchestrator",
    "get_playbook",
]
