"""One diagnostic run: playbook -> probes -> analysis, audited end to end."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from pcmedic.analysis.bridge import AnalysisBridge
from pcmedic.audit.recorder import AuditRecorder
from pcmedic.core.errors import PCMedicError
from pcmedic.core.models import Diagnosis, InvestigationResult
from pcmedic.investigate.orchestrator import PlaybookOrchestrator, StepCallback
from pcmedic.investigate.playbooks import get_playbook

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticOutcome:
    result: InvestigationResult
    diagnosis: Diagnosis

    @property
    def session_id(self) -> str:
        return self.result.session_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "investigation": self.result.to_dict(),
            "diagnosis": self.diagnosis.to_dict(),
        }


class DiagnosticSession:
    """Ties the playbook catalog, orchestrator, analysis bridge and ledger."""

    def __init__(
        self,
        orchestrator: PlaybookOrchestrator,
        bridge: AnalysisBridge,
        recorder: AuditRecorder,
    ):
        self.orchestrator = orchestrator
        self.bridge = bridge
        self.recorder = recorder

    def run(self, problem_type: str, on_step: StepCallback | None = None) -> DiagnosticOutcome:
        """Investigate *problem_type* and return findings plus diagnosis.

        Raises:
            UnknownProblemType: Before anything is logged.
            AnalysisError: After a ``DIAGNOSTIC_ERROR`` entry is appended.
        """
        playbook = get_playbook(problem_type)
        session_id = uuid.uuid4().hex
        self.recorder.log_diagnostic_start(session_id, problem_type, playbook.key)
        result = self.orchestrator.run(
            playbook,
            {"problem_type": problem_type, "session_id": session_id, "on_step": on_step},
        )

        try:
            diagnosis = self.bridge.analyze(result, problem_type)
        except (PCMedicError, ImportError) as e:
            logger.error("Diagnosis %s failed: %s", result.session_id, e)
            self.recorder.log_diagnostic_error(result.session_id, problem_type, str(e))
            raise

        self.recorder.log_diagnostic_complete(
            result.session_id,
            problem_type,
            summary=diagnosis.summary,
            issue_count=len(diagnosis.issues),
            fix_count=len(diagnosis.fixes),
            failed_probes=result.failed_probes,
        )
        return DiagnosticOutcome(result=result, diagnosis=diagnosis)
