"""Tests for a complete diagnostic session."""

from __future__ import annotations

from typing import Any

import pytest
from conftest import FakeBridge, FakeRunner, make_fix

from pcmedic.audit.entries import EntryType
from pcmedic.core.errors import AnalysisError, UnknownProblemType
from pcmedic.core.models import Diagnosis, Finding
from pcmedic.investigate.orchestrator import PlaybookOrchestrator
from pcmedic.investigate.session import DiagnosticSession
from pcmedic.probes.base import BaseProbe


class QuietProbe(BaseProbe):
    def collect(self, config: dict[str, Any]) -> Finding:
        return self._make_finding()


def _registry() -> dict[str, type[BaseProbe]]:
    kinds = ["network"]
    return {k: type(f"Quiet_{k}", (QuietProbe,), {"probe_kind": k}) for k in kinds}


@pytest.fixture
def orchestrator() -> PlaybookOrchestrator:
    return PlaybookOrchestrator(runner=FakeRunner(), platform_name="linux", registry=_registry())


class TestDiagnosticSession:
    def test_successful_session_is_audited(self, orchestrator, recorder, ledger):
        diagnosis = Diagnosis(summary="DNS is broken.", fixes=[make_fix(), make_fix("fix-2")])
        bridge = FakeBridge(diagnosis)

        outcome = DiagnosticSession(orchestrator, bridge, recorder).run("network")

        assert outcome.diagnosis is diagnosis
        assert bridge.calls[0][1] == "network"
        entries = ledger.query()
        assert [e.type for e in entries] == [
            EntryType.DIAGNOSTIC_START, EntryType.DIAGNOSTIC_COMPLETE,
        ]
        assert {e.session_id for e in entries} == {outcome.session_id}
        assert entries[1].data["fix_count"] == 2
        stats = ledger.statistics()
        assert stats.total_diagnostics == 1
        assert stats.total_fixes_recommended == 2

    def test_start_is_logged_before_probes_run(self, orchestrator, recorder, ledger):
        seen = []

        def on_step(index, total, step):
            seen.append([e.type for e in ledger.query()])

        DiagnosticSession(orchestrator, FakeBridge(), recorder).run("network", on_step=on_step)
        assert seen == [[EntryType.DIAGNOSTIC_START]]

    def test_analysis_error_is_logged_and_raised(self, orchestrator, recorder, ledger):
        bridge = FakeBridge(error=AnalysisError("no JSON"))

        with pytest.raises(AnalysisError):
            DiagnosticSession(orchestrator, bridge, recorder).run("network")

        entries = ledger.query()
        assert [e.type for e in entries] == [EntryType.DIAGNOSTIC_START, EntryType.DIAGNOSTIC_ERROR]
        assert entries[1].data["error"] == "no JSON"
        assert ledger.statistics().total_diagnostics == 0

    def test_unknown_problem_type_logs_nothing(self, orchestrator, recorder, ledger):
        with pytest.raises(UnknownProblemType):
            DiagnosticSession(orchestrator, FakeBridge(), recorder).run("printer")
        assert ledger.query() == []

    def test_outcome_to_dict(self, orchestrator, recorder):
        outcome = DiagnosticSession(orchestrator, FakeBridge(), recorder).run("network")
        data = outcome.to_dict()
        assert data["investigation"]["session_id"] == outcome.session_id
        assert data["diagnosis"]["summary"] == "All good."
