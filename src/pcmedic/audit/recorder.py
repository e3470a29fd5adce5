"""Convenience writers that build and append typed audit entries."""

from __future__ import annotations

from typing import Any

from pcmedic.audit.entries import AuditEntry, EntryType
from pcmedic.audit.ledger import AuditLedger
from pcmedic.core.models import ExecutionRecord, FixProposal, RestorePoint, StepLog

DEFAULT_MAX_OUTPUT_CHARS = 5000
TRUNCATION_MARKER = "\n... (output truncated)"


def truncate_output(text: str, limit: int = DEFAULT_MAX_OUTPUT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


class AuditRecorder:
    """Writes one entry per event through an :class:`AuditLedger`.

    Every method returns the appended entry. Ledger failures propagate as
    :class:`~pcmedic.core.errors.LedgerError`.
    """

    def __init__(self, ledger: AuditLedger, max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS):
        self.ledger = ledger
        self.max_output_chars = max_output_chars

    def _append(
        self,
        entry_type: EntryType,
        data: dict[str, Any],
        session_id: str | None = None,
        status: str | None = None,
    ) -> AuditEntry:
        return self.ledger.append(
            AuditEntry(type=entry_type, data=data, session_id=session_id, status=status)
        )

    # -- diagnostics ---------------------------------------------------

    def log_diagnostic_start(self, session_id: str, problem_type: str, playbook: str) -> AuditEntry:
        return self._append(
            EntryType.DIAGNOSTIC_START,
            {"problem_type": problem_type, "playbook": playbook},
            session_id=session_id,
            status="started",
        )

    def log_diagnostic_complete(
        self,
        session_id: str,
        problem_type: str,
        summary: str,
        issue_count: int,
        fix_count: int,
        failed_probes: list[str] | None = None,
    ) -> AuditEntry:
        return self._append(
            EntryType.DIAGNOSTIC_COMPLETE,
            {
                "problem_type": problem_type,
                "summary": summary,
                "issue_count": issue_count,
                "fix_count": fix_count,
                "failed_probes": failed_probes or [],
            },
            session_id=session_id,
            status="completed",
        )

    def log_diagnostic_error(self, session_id: str, problem_type: str, error: str) -> AuditEntry:
        return self._append(
            EntryType.DIAGNOSTIC_ERROR,
            {"problem_type": problem_type, "error": error},
            session_id=session_id,
            status="error",
        )

    # -- fixes ---------------------------------------------------------

    def log_safety_check(
        self,
        fix_id: str,
        passed: bool,
        session_id: str | None = None,
        rule: str | None = None,
        reason: str | None = None,
        match: str | None = None,
    ) -> AuditEntry:
        data: dict[str, Any] = {"fix_id": fix_id, "passed": passed}
        if not passed:
            data.update({"rule": rule, "reason": reason, "match": match})
        return self._append(
            EntryType.SAFETY_CHECK,
            data,
            session_id=session_id,
            status="passed" if passed else "rejected",
        )

    def log_fix_start(self, proposal: FixProposal, session_id: str | None = None) -> AuditEntry:
        return self._append(
            EntryType.FIX_START,
            {
                "fix_id": proposal.id,
                "title": proposal.title,
                "risk_level": proposal.risk_level,
                "command_count": len(proposal.commands),
                "requires_restart": proposal.requires_restart,
            },
            session_id=session_id,
            status="started",
        )

    def log_restore_point_created(
        self, fix_id: str, restore_point: RestorePoint, session_id: str | None = None
    ) -> AuditEntry:
        return self._append(
            EntryType.RESTORE_POINT_CREATED,
            {"fix_id": fix_id, **restore_point.to_dict()},
            session_id=session_id,
            status="created",
        )

    def log_restore_point_failed(
        self, fix_id: str, error: str, session_id: str | None = None
    ) -> AuditEntry:
        return self._append(
            EntryType.RESTORE_POINT_FAILED,
            {"fix_id": fix_id, "error": error},
            session_id=session_id,
            status="failed",
        )

    def log_fix_progress(
        self, fix_id: str, step: StepLog, total_steps: int, session_id: str | None = None
    ) -> AuditEntry:
        data = step.to_dict()
        data["output"] = truncate_output(step.output, self.max_output_chars)
        data["error"] = truncate_output(step.error, self.max_output_chars)
        data.update({"fix_id": fix_id, "total_steps": total_steps})
        return self._append(
            EntryType.FIX_PROGRESS,
            data,
            session_id=session_id,
            status="success" if step.success else "failed",
        )

    def log_fix_success(self, record: ExecutionRecord, session_id: str | None = None) -> AuditEntry:
        return self._append(
            EntryType.FIX_SUCCESS,
            {
                "fix_id": record.fix_id,
                "steps_completed": len(record.step_logs),
                "verified": bool(record.verification and record.verification.verified),
                "restore_point_id": record.restore_point_id,
            },
            session_id=session_id,
            status="success",
        )

    def log_fix_failure(
        self, record: ExecutionRecord, error: str, session_id: str | None = None
    ) -> AuditEntry:
        return self._append(
            EntryType.FIX_FAILURE,
            {
                "fix_id": record.fix_id,
                "error": error,
                "steps_completed": sum(1 for s in record.step_logs if s.success),
                "restore_point_id": record.restore_point_id,
            },
            session_id=session_id,
            status="failed",
        )

    def log_rollback(
        self,
        fix_id: str,
        restore_point_id: str,
        success: bool,
        error: str | None = None,
        session_id: str | None = None,
    ) -> AuditEntry:
        data: dict[str, Any] = {"fix_id": fix_id, "restore_point_id": restore_point_id}
        if error:
            data["error"] = error
        return self._append(
            EntryType.ROLLBACK,
            data,
            session_id=session_id,
            status="success" if success else "failed",
        )
