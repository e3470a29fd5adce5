"""Shared data models used across PCMedic modules."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pcmedic.core.errors import VerificationFailure


class Severity(enum.Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class RiskLevel(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def needs_restore_point(self) -> bool:
        return self in (RiskLevel.MEDIUM, RiskLevel.HIGH)


class ExecutionState(enum.Enum):
    """Lifecycle of a single fix execution attempt.

    Transitions only move forward through this list::

        PENDING -> SAFETY_CHECKED -> [RESTORE_POINT_CREATED] -> EXECUTING
                -> VERIFYING -> COMPLETED
                -> FAILED -> [ROLLED_BACK]
    """

    PENDING = "pending"
    SAFETY_CHECKED = "safety_checked"
    RESTORE_POINT_CREATED = "restore_point_created"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExecutionState.COMPLETED,
            ExecutionState.FAILED,
            ExecutionState.ROLLED_BACK,
        )


# Allowed forward transitions. FAILED is terminal unless a restore point
# exists, in which case the guard may move on to ROLLED_BACK.
_TRANSITIONS: dict[ExecutionState, tuple[ExecutionState, ...]] = {
    ExecutionState.PENDING: (ExecutionState.SAFETY_CHECKED,),
    ExecutionState.SAFETY_CHECKED: (
        ExecutionState.RESTORE_POINT_CREATED,
        ExecutionState.EXECUTING,
    ),
    ExecutionState.RESTORE_POINT_CREATED: (ExecutionState.EXECUTING,),
    ExecutionState.EXECUTING: (ExecutionState.VERIFYING, ExecutionState.FAILED),
    ExecutionState.VERIFYING: (ExecutionState.COMPLETED, ExecutionState.FAILED),
    ExecutionState.COMPLETED: (),
    ExecutionState.FAILED: (ExecutionState.ROLLED_BACK,),
    ExecutionState.ROLLED_BACK: (),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Investigation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProbeWarning:
    """A single problem observed by a probe."""

    severity: Severity
    message: str
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "message": self.message,
            "source": self.source,
        }


@dataclass(frozen=True)
class Recommendation:
    """A follow-up suggestion produced by a probe."""

    kind: str
    message: str
    severity: Severity = Severity.INFO

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "severity": self.severity.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class Finding:
    """Output of one probe invocation.

    ``error`` and the collected warnings are not exclusive: a probe that
    partially fails still reports what it gathered.
    """

    probe_kind: str
    warnings: tuple[ProbeWarning, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def critical_count(self) -> int:
        return sum(1 for w in self.warnings if w.severity == Severity.CRITICAL)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "probe_kind": self.probe_kind,
            "warnings": [w.to_dict() for w in self.warnings],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "raw": self.raw,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class Step:
    """One probe invocation inside a playbook."""

    probe_kind: str
    description: str = ""
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Playbook:
    """Named, ordered sequence of probe steps for one problem category."""

    key: str
    name: str
    description: str
    steps: tuple[Step, ...] = ()


@dataclass
class InvestigationResult:
    """Merged findings of one playbook run."""

    playbook: str
    problem_type: str = ""
    findings: list[Finding] = field(default_factory=list)
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def failed_probes(self) -> list[str]:
        return [f.probe_kind for f in self.findings if f.failed]

    @property
    def warning_count(self) -> int:
        return sum(len(f.warnings) for f in self.findings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "playbook": self.playbook,
            "problem_type": self.problem_type,
            "findings": [f.to_dict() for f in self.findings],
        }


# ---------------------------------------------------------------------------
# Diagnosis
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Issue:
    severity: Severity
    title: str
    description: str = ""
    priority: str | None = None
    confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class FixProposal:
    """A candidate remediation proposed by the analysis collaborator.

    Usually built from untrusted data by :mod:`pcmedic.analysis.schema`.
    Field values are not validated here; the safety guard re-checks every
    proposal before running anything.
    """

    id: str
    title: str
    risk_level: str
    commands: tuple[str, ...] = ()
    steps: tuple[str, ...] = ()
    description: str = ""
    why: str = ""
    requires_restart: bool = False
    estimated_time: str = ""
    automatable: bool = False
    priority: str | None = None
    confidence: float | None = None

    def display_step(self, index: int) -> str:
        """Human-readable text for command *index*, falling back to the command."""
        if index < len(self.steps) and self.steps[index]:
            return self.steps[index]
        return self.commands[index]

    @property
    def risk(self) -> RiskLevel | None:
        """Parsed risk level, or None when the collaborator sent an unknown value."""
        try:
            return RiskLevel(self.risk_level)
        except ValueError:
            return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "why": self.why,
            "riskLevel": self.risk_level,
            "requiresRestart": self.requires_restart,
            "estimatedTime": self.estimated_time,
            "steps": list(self.steps),
            "commands": list(self.commands),
            "automatable": self.automatable,
            "priority": self.priority,
            "confidence": self.confidence,
        }


@dataclass
class Diagnosis:
    summary: str
    issues: list[Issue] = field(default_factory=list)
    fixes: list[FixProposal] = field(default_factory=list)

    def get_fix(self, fix_id: str) -> FixProposal | None:
        return next((f for f in self.fixes if f.id == fix_id), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "issues": [i.to_dict() for i in self.issues],
            "fixes": [f.to_dict() for f in self.fixes],
        }


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RestorePoint:
    id: str
    description: str
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class StepLog:
    step_number: int
    command: str
    start_time: datetime
    success: bool
    output: str = ""
    error: str = ""
    exit_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_number": self.step_number,
            "command": self.command,
            "start_time": self.start_time.isoformat(),
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "exit_code": self.exit_code,
        }


@dataclass(frozen=True)
class Verification:
    verified: bool
    steps_completed: int
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "verified": self.verified,
            "steps_completed": self.steps_completed,
            "reason": self.reason,
        }


class FrozenRecordError(RuntimeError):
    """Raised when a terminal ExecutionRecord is mutated."""


@dataclass
class ExecutionRecord:
    """Trail of one fix execution attempt.

    Only the safety guard mutates a record, and only through the methods
    below. Once :meth:`freeze` has been called every mutation raises.
    """

    fix_id: str
    state: ExecutionState = ExecutionState.PENDING
    restore_point_id: str | None = None
    step_logs: list[StepLog] = field(default_factory=list)
    verification: Verification | None = None
    error: str | None = None
    started_at: datetime = field(default_factory=_utcnow)
    _frozen: bool = field(default=False, repr=False)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def transition(self, new_state: ExecutionState) -> None:
        self._check_mutable()
        if new_state is ExecutionState.ROLLED_BACK and self.restore_point_id is None:
            raise ValueError("Cannot roll back without a restore point")
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Illegal transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    def add_step(self, step: StepLog) -> None:
        self._check_mutable()
        expected = len(self.step_logs) + 1
        if step.step_number != expected:
            raise ValueError(
                f"Step {step.step_number} out of order (expected {expected})"
            )
        self.step_logs.append(step)

    def set_restore_point(self, restore_point_id: str) -> None:
        self._check_mutable()
        self.restore_point_id = restore_point_id

    def set_verification(self, verification: Verification) -> None:
        self._check_mutable()
        self.verification = verification

    def set_error(self, message: str) -> None:
        self._check_mutable()
        self.error = message

    def freeze(self) -> None:
        self._frozen = True

    def _check_mutable(self) -> None:
        if self._frozen:
            raise FrozenRecordError(f"Execution record for {self.fix_id} is frozen")

    def to_dict(self) -> dict[str, Any]:
        return {
            "fix_id": self.fix_id,
            "state": self.state.value,
            "restore_point_id": self.restore_point_id,
            "step_logs": [s.to_dict() for s in self.step_logs],
            "verification": self.verification.to_dict() if self.verification else None,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
        }


@dataclass
class ExecutionResult:
    """Returned by the safety guard when a fix ran to completion."""

    record: ExecutionRecord
    restore_point: RestorePoint | None = None
    verification_failure: VerificationFailure | None = None

    @property
    def success(self) -> bool:
        return self.record.state is ExecutionState.COMPLETED

    @property
    def verified(self) -> bool:
        return bool(self.record.verification and self.record.verification.verified)


@dataclass(frozen=True)
class ProgressEvent:
    """One entry of the fix-execution progress stream."""

    stage: str
    message: str
    percentage: int
    current_step: int | None = None
    total_steps: int | None = None
    command: str | None = None
    output: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "stage": self.stage,
            "message": self.message,
            "percentage": self.percentage,
        }
        for key in ("current_step", "total_steps", "command", "output", "error"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data
