"""Tests for the execution record lifecycle and proposal helpers."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from conftest import make_fix

from pcmedic.core.models import (
    ExecutionRecord,
    ExecutionState,
    FrozenRecordError,
    RiskLevel,
    StepLog,
)

STARTED = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _step(number: int, success: bool = True) -> StepLog:
    return StepLog(step_number=number, command=f"cmd{number}", start_time=STARTED, success=success)


class TestExecutionRecord:
    def test_happy_path_transitions(self):
        record = ExecutionRecord(fix_id="fix-1")
        for state in (
            ExecutionState.SAFETY_CHECKED,
            ExecutionState.RESTORE_POINT_CREATED,
            ExecutionState.EXECUTING,
            ExecutionState.VERIFYING,
            ExecutionState.COMPLETED,
        ):
            record.transition(state)
        assert record.state.is_terminal

    def test_cannot_skip_safety_check(self):
        record = ExecutionRecord(fix_id="fix-1")
        with pytest.raises(ValueError, match="Illegal transition"):
            record.transition(ExecutionState.EXECUTING)

    def test_rollback_requires_restore_point(self):
        record = ExecutionRecord(fix_id="fix-1")
        record.transition(ExecutionState.SAFETY_CHECKED)
        record.transition(ExecutionState.EXECUTING)
        record.transition(ExecutionState.FAILED)
        with pytest.raises(ValueError, match="restore point"):
            record.transition(ExecutionState.ROLLED_BACK)

        record.set_restore_point("12")
        record.transition(ExecutionState.ROLLED_BACK)
        assert record.state is ExecutionState.ROLLED_BACK

    def test_steps_must_arrive_in_order(self):
        record = ExecutionRecord(fix_id="fix-1")
        record.add_step(_step(1))
        with pytest.raises(ValueError, match="out of order"):
            record.add_step(_step(3))
        record.add_step(_step(2, success=False))
        assert [s.step_number for s in record.step_logs] == [1, 2]

    def test_frozen_record_rejects_mutation(self):
        record = ExecutionRecord(fix_id="fix-1")
        record.freeze()
        with pytest.raises(FrozenRecordError):
            record.add_step(_step(1))
        with pytest.raises(FrozenRecordError):
            record.set_error("late")
        assert record.to_dict()["state"] == "pending"


class TestFixProposal:
    def test_risk_parsing(self):
        assert make_fix(risk_level="medium").risk is RiskLevel.MEDIUM
        assert make_fix(risk_level="extreme").risk is None
        assert RiskLevel.HIGH.needs_restore_point
        assert not RiskLevel.LOW.needs_restore_point

    def test_display_step_falls_back_to_command(self):
        fix = make_fix(commands=("a", "b"), steps=("Do A",))
        assert fix.display_step(0) == "Do A"
        assert fix.display_step(1) == "b"
