"""Exception taxonomy for PCMedic."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pcmedic.core.models import ExecutionRecord


class PCMedicError(Exception):
    """Base class for all PCMedic errors."""


class ConfigError(PCMedicError):
    pass


class LedgerError(PCMedicError):
    """The audit ledger's backing store is unavailable or rejected a write."""


class ProbeFailure(PCMedicError):
    """A probe could not run. Recovered by the orchestrator."""

    def __init__(self, probe_kind: str, message: str):
        super().__init__(f"{probe_kind}: {message}")
        self.probe_kind = probe_kind


class UnknownProblemType(PCMedicError):
    def __init__(self, problem_type: str, known: list[str]):
        super().__init__(
            f"Unknown problem type: {problem_type!r} "
            f"(expected one of: {', '.join(known)})"
        )
        self.problem_type = problem_type


class AnalysisError(PCMedicError):
    """The analysis collaborator could not be reached or answered garbage."""


# ---------------------------------------------------------------------------
# Safety rejections: raised before any command runs
# ---------------------------------------------------------------------------


class SafetyRejection(PCMedicError):
    """A fix proposal was refused before execution.

    ``rule`` names the rule that matched so the user always sees a precise
    reason.
    """

    rule = "safety"

    def __init__(self, proposal_id: str, reason: str, match: str | None = None):
        super().__init__(f"Safety check failed for {proposal_id}: {reason}")
        self.proposal_id = proposal_id
        self.reason = reason
        self.match = match


class NotAutomatable(SafetyRejection):
    rule = "not_automatable"


class NoCommands(SafetyRejection):
    rule = "no_commands"


class ForbiddenOperation(SafetyRejection):
    rule = "forbidden_operation"


class NonsensicalOperation(SafetyRejection):
    rule = "nonsensical_operation"


class MalformedProposal(SafetyRejection):
    rule = "malformed_proposal"


# ---------------------------------------------------------------------------
# Execution failures: carry the partial execution record
# ---------------------------------------------------------------------------


class ExecutionInProgress(PCMedicError):
    """Another fix is already executing on this machine."""


class StepExecutionFailure(PCMedicError):
    """A fix command failed; no further commands were run."""

    def __init__(
        self,
        message: str,
        record: ExecutionRecord,
        step_number: int | None = None,
        command: str | None = None,
    ):
        super().__init__(message)
        self.record = record
        self.step_number = step_number
        self.command = command

    @property
    def rolled_back(self) -> bool:
        return self.record.state.value == "rolled_back"


class ExecutionCancelled(StepExecutionFailure):
    """Cancellation was requested between two steps."""


class RollbackFailure(PCMedicError):
    """The restore point could not be applied after a failed fix.

    This is terminal. Nothing is retried automatically.
    """

    def __init__(
        self,
        message: str,
        record: ExecutionRecord,
        restore_point_id: str,
        cause: StepExecutionFailure | None = None,
    ):
        super().__init__(message)
        self.record = record
        self.restore_point_id = restore_point_id
        self.cause = cause

    @property
    def recovery_guidance(self) -> str:
        return (
            f"Automatic rollback failed. Restore the system manually from "
            f"restore point {self.restore_point_id} (System Restore / "
            f"Time Machine) before running further fixes."
        )


class RestorePointFailure(PCMedicError):
    """A restore point could not be created.

    The safety guard catches this, logs it and carries on without a
    rollback safety net.
    """


class VerificationFailure:
    """Soft warning: all steps ran but success could not be confirmed.

    Not an exception. Attached to ``ExecutionResult.verification_failure``.
    """

    def __init__(self, fix_id: str, reason: str):
        self.fix_id = fix_id
        self.reason = reason

    def __str__(self) -> str:
        return f"Could not verify fix {self.fix_id}: {self.reason}"
