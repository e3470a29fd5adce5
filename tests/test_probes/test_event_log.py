"""Tests for the system-log probe."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from conftest import FakeRunner

from pcmedic.core.models import Severity
from pcmedic.core.platform import LINUX, WINDOWS
from pcmedic.probes.event_log import EventLogProbe

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _journal_line(source: str, message, hours_ago: float) -> str:
    ts = NOW - timedelta(hours=hours_ago)
    return json.dumps({
        "MESSAGE": message,
        "SYSLOG_IDENTIFIER": source,
        "__REALTIME_TIMESTAMP": str(int(ts.timestamp() * 1_000_000)),
    })


def _probe(runner: FakeRunner, platform_name: str = LINUX) -> EventLogProbe:
    return EventLogProbe(runner=runner, platform_name=platform_name, now=lambda: NOW)


class TestJournal:
    def test_recurring_errors_become_warnings(self):
        lines = [_journal_line("nvidia", "GPU has fallen off the bus", h) for h in (1, 2, 3, 4, 5)]
        lines.append(_journal_line("cron", "job failed", 24 * 6))
        runner = FakeRunner()
        runner.script("journalctl", stdout="\n".join(lines))

        finding = _probe(runner).collect({"time_range_days": 7})

        assert finding.error is None
        assert finding.raw["event_count"] == 6
        assert finding.raw["recent_event_count"] == 5
        assert len(finding.raw["patterns"]) == 1
        assert finding.warnings[0].severity is Severity.CRITICAL
        assert "nvidia:GPU has fallen off the bus" in finding.warnings[0].message
        assert finding.recommendations[0].kind == "investigate-recurring-error"

    def test_binary_messages_and_garbage_lines_are_skipped(self):
        lines = [
            _journal_line("kernel", [104, 105], 1),
            "not json",
            _journal_line("sshd", "auth failure", 1),
        ]
        runner = FakeRunner()
        runner.script("journalctl", stdout="\n".join(lines))

        finding = _probe(runner).collect({})

        assert finding.raw["event_count"] == 1
        assert finding.warnings == ()

    def test_info_patterns_are_not_warnings(self):
        lines = [_journal_line("svc", "timeout", h) for h in (12, 24 * 4, 24 * 5)]
        runner = FakeRunner()
        runner.script("journalctl", stdout="\n".join(lines))

        finding = _probe(runner).collect({})

        assert len(finding.raw["patterns"]) == 1
        assert finding.warnings == ()

    def test_reader_failure_is_reported_not_raised(self):
        runner = FakeRunner()
        runner.script("journalctl", stderr="permission denied", exit_code=1)

        finding = _probe(runner).collect({})

        assert finding.failed
        assert "permission denied" in finding.error
        assert finding.raw["event_count"] == 0

    def test_pattern_detection_can_be_disabled(self):
        lines = [_journal_line("app", "crash", h) for h in (1, 2)]
        runner = FakeRunner()
        runner.script("journalctl", stdout="\n".join(lines))

        finding = _probe(runner).collect({"find_patterns": False})

        assert finding.raw["patterns"] == []
        assert finding.raw["event_count"] == 2


class TestWindows:
    def test_reads_each_log_and_parses_ps_dates(self):
        ms = int((NOW - timedelta(hours=3)).timestamp() * 1000)
        rows = [
            {"TimeGenerated": f"/Date({ms})/", "Source": "Disk", "Message": "bad block"},
            {"TimeGenerated": f"/Date({ms})/", "Source": "Disk", "Message": "bad block"},
        ]
        runner = FakeRunner()
        runner.script("-LogName Application", stdout=json.dumps(rows))
        runner.script("-LogName System", stderr="No matches found", exit_code=1)

        finding = _probe(runner, WINDOWS).collect({"log_names": ["Application", "System"]})

        assert len(runner.calls) == 2
        assert finding.error is None
        assert finding.raw["event_count"] == 2
        assert finding.warnings[0].severity is Severity.WARNING

    def test_one_failing_log_does_not_hide_the_other(self):
        ms = int((NOW - timedelta(hours=1)).timestamp() * 1000)
        row = {"TimeGenerated": f"/Date({ms})/", "Source": "App", "Message": "oops"}
        runner = FakeRunner()
        runner.script("-LogName Application", stdout=json.dumps(row))
        runner.script("-LogName System", stderr="Access denied", exit_code=5)

        finding = _probe(runner, WINDOWS).collect({})

        assert finding.raw["event_count"] == 1
        assert finding.error.startswith("System:")
