"""Shared fakes for PCMedic tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from pcmedic.analysis.bridge import AnalysisBridge
from pcmedic.audit.ledger import MemoryAuditLedger
from pcmedic.audit.recorder import AuditRecorder
from pcmedic.core.commands import CommandResult, CommandRunner
from pcmedic.core.models import Diagnosis, FixProposal, InvestigationResult


class FakeRunner(CommandRunner):
    """Returns scripted results keyed by a substring of the command.

    The first matching rule wins; unmatched commands succeed with no output.
    Every call is recorded in ``calls``.
    """

    def __init__(self, rules: list[tuple[str, CommandResult]] | None = None):
        self.rules = list(rules or [])
        self.calls: list[str] = []
        self.timeouts: list[float | None] = []

    def script(self, needle: str, stdout: str = "", stderr: str = "", exit_code: int = 0) -> None:
        self.rules.append(
            (needle, CommandResult(command=needle, stdout=stdout, stderr=stderr, exit_code=exit_code))
        )

    def run(self, command: str, timeout: float | None = None) -> CommandResult:
        self.calls.append(command)
        self.timeouts.append(timeout)
        for needle, result in self.rules:
            if needle in command:
                return CommandResult(
                    command=command,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    exit_code=result.exit_code,
                    timed_out=result.timed_out,
                )
        return CommandResult(command=command)


class FakeBridge(AnalysisBridge):
    """Returns a fixed diagnosis, or raises a fixed error."""

    def __init__(self, diagnosis: Diagnosis | None = None, error: Exception | None = None):
        self.diagnosis = diagnosis or Diagnosis(summary="All good.")
        self.error = error
        self.calls: list[tuple[InvestigationResult, str]] = []

    def analyze(self, result: InvestigationResult, problem_type: str) -> Diagnosis:
        self.calls.append((result, problem_type))
        if self.error is not None:
            raise self.error
        return self.diagnosis


def make_fix(
    fix_id: str = "fix-1",
    commands: tuple[str, ...] = ("ipconfig /flushdns",),
    risk_level: str = "low",
    title: str = "Flush DNS cache",
    automatable: bool = True,
    steps: tuple[str, ...] = (),
    requires_restart: bool = False,
) -> FixProposal:
    return FixProposal(
        id=fix_id,
        title=title,
        risk_level=risk_level,
        commands=commands,
        steps=steps,
        automatable=automatable,
        requires_restart=requires_restart,
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def ledger() -> MemoryAuditLedger:
    return MemoryAuditLedger()


@pytest.fixture
def recorder(ledger: MemoryAuditLedger) -> AuditRecorder:
    return AuditRecorder(ledger)


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    path = tmp_path / ".pcmedic"
    path.mkdir()
    return path
