"""Guarded fix execution.

:class:`SafetyGuard` walks one :class:`FixProposal` through::

    PENDING -> SAFETY_CHECKED -> [RESTORE_POINT_CREATED] -> EXECUTING
            -> VERIFYING -> COMPLETED
            -> FAILED -> [ROLLED_BACK]

Each transition and each command is written to the audit ledger before the
guard moves on, so an interrupted run still leaves an accurate trail.
Commands run one at a time; the first failure stops the fix.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None  # type: ignore[assignment]

from pcmedic.audit.recorder import AuditRecorder
from pcmedic.core.commands import CommandRunner
from pcmedic.core.config import SafetyConfig
from pcmedic.core.errors import (
    ExecutionCancelled,
    ExecutionInProgress,
    RestorePointFailure,
    RollbackFailure,
    SafetyRejection,
    StepExecutionFailure,
    VerificationFailure,
)
from pcmedic.core.models import (
    ExecutionRecord,
    ExecutionResult,
    ExecutionState,
    FixProposal,
    RestorePoint,
    StepLog,
    Verification,
)
from pcmedic.safety import progress as stages
from pcmedic.safety.progress import ProgressChannel, step_percentage
from pcmedic.safety.restore import RestorePointManager
from pcmedic.safety.rules import check_proposal

logger = logging.getLogger(__name__)

_LOCK_FILENAME = "fix.lock"

# One fix at a time per process; the lock file extends this across processes.
_PROCESS_LOCK = threading.Lock()


class ExecutionLock:
    """Machine-wide exclusive lock around a fix execution.

    Never blocks: if another execution holds it, :meth:`acquire` raises
    :class:`ExecutionInProgress` immediately.
    """

    def __init__(self, state_dir: Path | None = None):
        self._path = state_dir / _LOCK_FILENAME if state_dir else None
        self._fd: IO[str] | None = None

    def acquire(self) -> None:
        if not _PROCESS_LOCK.acquire(blocking=False):
            raise ExecutionInProgress("Another fix is already running in this process")
        if self._path is None or fcntl is None:
            return
        fd = open(self._path, "w", encoding="utf-8")
        try:
            fcntl.flock(fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            fd.close()
            _PROCESS_LOCK.release()
            raise ExecutionInProgress(
                f"Another fix is already running on this machine ({self._path})"
            ) from None
        self._fd = fd

    def release(self) -> None:
        if self._fd is not None:
            fcntl.flock(self._fd.fileno(), fcntl.LOCK_UN)
            self._fd.close()
            self._fd = None
        _PROCESS_LOCK.release()

    def __enter__(self) -> ExecutionLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()


class SafetyGuard:
    """Decides whether a fix may run and runs it safely.

    The guard never chooses a fix. It only validates the proposal it is
    handed and executes it under the state machine above.
    """

    def __init__(
        self,
        runner: CommandRunner,
        recorder: AuditRecorder,
        restore_points: RestorePointManager | None = None,
        progress: ProgressChannel | None = None,
        config: SafetyConfig | None = None,
        state_dir: Path | None = None,
    ):
        self.runner = runner
        self.recorder = recorder
        self.restore_points = restore_points
        self.progress = progress or ProgressChannel()
        self.config = config or SafetyConfig()
        self.state_dir = state_dir

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, proposal: FixProposal) -> None:
        """Run the static rules only. Raises SafetyRejection; logs nothing."""
        check_proposal(proposal, self.config.extra_forbidden)

    def execute(
        self,
        proposal: FixProposal,
        diagnostic_id: str | None = None,
        cancel: threading.Event | None = None,
    ) -> ExecutionResult:
        """Validate and run *proposal*.

        Returns an :class:`ExecutionResult` when every command succeeded.

        Raises:
            ExecutionInProgress: Another fix holds the execution lock.
            SafetyRejection: The proposal failed a rule. Nothing ran.
            StepExecutionFailure: A command failed (or ``cancel`` was set).
                ``record`` shows what ran and whether it was rolled back.
            RollbackFailure: A command failed and the restore point could
                not be applied. Manual recovery is required.
        """
        with ExecutionLock(self.state_dir):
            return self._execute(proposal, diagnostic_id, cancel)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _execute(
        self,
        proposal: FixProposal,
        session_id: str | None,
        cancel: threading.Event | None,
    ) -> ExecutionResult:
        record = ExecutionRecord(fix_id=proposal.id)
        self.progress.emit(stages.STARTING, "Preparing to apply fix...", 0)

        self.progress.emit(stages.SAFETY_CHECK, "Running safety checks...", 10)
        try:
            self.validate(proposal)
        except SafetyRejection as e:
            logger.warning("Rejected fix %s (%s): %s", proposal.id, e.rule, e.reason)
            self.recorder.log_safety_check(
                proposal.id, False, session_id, rule=e.rule, reason=e.reason, match=e.match
            )
            record.set_error(str(e))
            record.freeze()
            raise
        self.recorder.log_safety_check(proposal.id, True, session_id)
        record.transition(ExecutionState.SAFETY_CHECKED)
        self.recorder.log_fix_start(proposal, session_id)

        restore_point = None
        if proposal.risk is not None and proposal.risk.needs_restore_point:
            restore_point = self._create_restore_point(proposal, record, session_id)

        self.progress.emit(stages.EXECUTING, "Starting fix execution...", 30)
        record.transition(ExecutionState.EXECUTING)
        failure = self._run_commands(proposal, record, session_id, cancel)
        if failure is not None:
            self._fail(record, failure, session_id)

        record.transition(ExecutionState.VERIFYING)
        self.progress.emit(stages.VERIFYING, "Verifying fix was successful...", 95)
        verification = _verify(record, len(proposal.commands))
        record.set_verification(verification)
        record.transition(ExecutionState.COMPLETED)
        self.recorder.log_fix_success(record, session_id)
        self.progress.emit(stages.COMPLETE, "Fix applied successfully!", 100)
        record.freeze()

        soft_failure = None
        if not verification.verified:
            soft_failure = VerificationFailure(proposal.id, verification.reason)
            logger.warning("%s", soft_failure)
        return ExecutionResult(
            record=record, restore_point=restore_point, verification_failure=soft_failure
        )

    def _create_restore_point(
        self, proposal: FixProposal, record: ExecutionRecord, session_id: str | None
    ) -> RestorePoint | None:
        self.progress.emit(stages.RESTORE_POINT, "Creating system restore point...", 20)
        if self.restore_points is None or not self.config.create_restore_points:
            self.recorder.log_restore_point_failed(
                proposal.id, "restore points disabled", session_id
            )
            return None
        try:
            point = self.restore_points.create(proposal.title, proposal.id)
        except RestorePointFailure as e:
            # Non-fatal: the fix proceeds without a rollback safety net.
            logger.warning("Could not create restore point for %s: %s", proposal.id, e)
            self.recorder.log_restore_point_failed(proposal.id, str(e), session_id)
            return None
        self.recorder.log_restore_point_created(proposal.id, point, session_id)
        record.set_restore_point(point.id)
        record.transition(ExecutionState.RESTORE_POINT_CREATED)
        return point

    def _run_commands(
        self,
        proposal: FixProposal,
        record: ExecutionRecord,
        session_id: str | None,
        cancel: threading.Event | None,
    ) -> StepExecutionFailure | None:
        total = len(proposal.commands)
        for index, command in enumerate(proposal.commands):
            number = index + 1
            if cancel is not None and cancel.is_set():
                return ExecutionCancelled(
                    f"Cancelled before step {number}/{total}: {command}",
                    record, number, command,
                )

            display = proposal.display_step(index)
            pct = step_percentage(index, total)
            self.progress.emit(
                stages.EXECUTING_STEP,
                f"Step {number}/{total}: {display}",
                pct,
                current_step=number,
                total_steps=total,
                command=display,
            )

            started = datetime.now(timezone.utc)
            result = self.runner.run(command, timeout=self.config.command_timeout_seconds)
            step = StepLog(
                step_number=number,
                command=command,
                start_time=started,
                success=result.ok,
                output=result.stdout,
                error=result.stderr if result.ok else (result.stderr or result.failure_reason),
                exit_code=result.exit_code,
            )
            record.add_step(step)
            self.recorder.log_fix_progress(proposal.id, step, total, session_id)

            if result.ok:
                self.progress.emit(
                    stages.STEP_COMPLETE,
                    f"Step {number} completed",
                    pct + stages.EXECUTION_SPAN_PCT // total,
                    current_step=number,
                    total_steps=total,
                    output=result.stdout or result.stderr or "Success",
                )
                continue

            reason = result.failure_reason
            self.progress.emit(
                stages.STEP_FAILED,
                f"Step {number} failed: {reason}",
                pct,
                current_step=number,
                total_steps=total,
                error=reason,
            )
            return StepExecutionFailure(
                f"Step {number}/{total} failed: command {command!r}: {reason}",
                record, number, command,
            )
        return None

    def _fail(
        self,
        record: ExecutionRecord,
        failure: StepExecutionFailure,
        session_id: str | None,
    ) -> None:
        """Record the failure, roll back if possible, and raise."""
        logger.error("Fix %s failed: %s", record.fix_id, failure)
        record.set_error(str(failure))
        record.transition(ExecutionState.FAILED)
        self.recorder.log_fix_failure(record, str(failure), session_id)

        restore_point_id = record.restore_point_id
        if restore_point_id is None or self.restore_points is None:
            record.freeze()
            raise failure

        self.progress.emit(
            stages.ROLLBACK, "Fix failed, rolling back changes...", 0, error=str(failure)
        )
        outcome = self.restore_points.rollback(restore_point_id)
        if outcome.ok:
            self.recorder.log_rollback(record.fix_id, restore_point_id, True, session_id=session_id)
            record.transition(ExecutionState.ROLLED_BACK)
            self.progress.emit(
                stages.ROLLBACK_COMPLETE, f"Rolled back to restore point {restore_point_id}", 100
            )
            record.freeze()
            raise failure

        reason = outcome.failure_reason or "restore command failed"
        self.recorder.log_rollback(
            record.fix_id, restore_point_id, False, error=reason, session_id=session_id
        )
        self.progress.emit(stages.ROLLBACK_FAILED, f"Rollback failed: {reason}", 0, error=reason)
        record.freeze()
        raise RollbackFailure(
            f"Rollback to restore point {restore_point_id} failed after "
            f"{failure}: {reason}",
            record, restore_point_id, cause=failure,
        ) from failure


def _verify(record: ExecutionRecord, expected_steps: int) -> Verification:
    completed = sum(1 for s in record.step_logs if s.success)
    if completed == expected_steps and len(record.step_logs) == expected_steps:
        return Verification(verified=True, steps_completed=completed)
    return Verification(
        verified=False,
        steps_completed=completed,
        reason=f"{completed} of {expected_steps} steps reported success",
    )
