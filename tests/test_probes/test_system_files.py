"""Tests for the system-file integrity probe."""

from __future__ import annotations

import pytest
from conftest import FakeRunner

from pcmedic.core.models import Severity
from pcmedic.core.platform import LINUX, MACOS, WINDOWS
from pcmedic.probes.system_files import SystemFileProbe, sfc_verdict

CLEAN = "2024-10-01 Info CSI [SR] Beginning system scan\n" \
        "2024-10-01 Info CSI [SR] Verify complete\n" \
        "Windows Resource Protection did not find any integrity violations.\n"

UNREPAIRABLE = "Windows Resource Protection found corrupt files but was unable to fix some of them.\n"


class TestSfcVerdict:
    def test_latest_conclusion_wins(self):
        tail = UNREPAIRABLE + CLEAN
        assert sfc_verdict(tail) == ("healthy", None)

    def test_repaired_corruption_is_healthy(self):
        status, note = sfc_verdict(
            "Windows Resource Protection found corrupt files and successfully repaired them.\n"
        )
        assert status == "healthy"
        assert "repaired" in note

    def test_no_conclusion(self):
        assert sfc_verdict("Beginning system scan\n")[0] == "no-recent-scan"
        assert sfc_verdict("")[0] == "no-recent-scan"


def _windows(cbs="", dism="No component store corruption detected.", **config):
    runner = FakeRunner()
    runner.script("CBS.log", stdout=cbs)
    runner.script("ScanHealth", stdout=dism)
    return runner, SystemFileProbe(runner=runner, platform_name=WINDOWS).collect(config)


class TestSystemFileProbe:
    def test_healthy_system_has_no_warnings(self):
        _, finding = _windows(cbs=CLEAN)
        assert finding.raw["sfc_status"] == "healthy"
        assert finding.raw["dism_status"] == "healthy"
        assert finding.warnings == ()
        assert finding.recommendations == ()

    def test_unrepairable_corruption_is_critical(self):
        _, finding = _windows(cbs=UNREPAIRABLE)
        assert finding.warnings[0].severity is Severity.CRITICAL
        assert finding.recommendations[0].kind == "system-repair"

    def test_component_store_corruption(self):
        _, finding = _windows(cbs=CLEAN, dism="The component store is repairable. Corruption found.")
        assert finding.raw["dism_status"] == "corruption-detected"
        assert finding.recommendations[0].kind == "dism-repair"

    def test_component_store_check_can_be_skipped(self):
        runner, finding = _windows(cbs=CLEAN, check_component_store=False)
        assert finding.raw["dism_status"] is None
        assert not any("ScanHealth" in call for call in runner.calls)

    def test_unreadable_log(self):
        runner = FakeRunner()
        runner.script("CBS.log", stderr="Access is denied.", exit_code=1)
        finding = SystemFileProbe(runner=runner, platform_name=WINDOWS).collect(
            {"check_component_store": False}
        )
        assert finding.raw["sfc_status"] == "log-not-accessible"
        assert finding.warnings == ()

    @pytest.mark.parametrize("preventive,expected", [(False, []), (True, ["preventive"])])
    def test_preventive_scan_only_when_asked(self, preventive, expected):
        _, finding = _windows(cbs="", recommend_preventive=preventive)
        assert finding.raw["sfc_status"] == "no-recent-scan"
        assert [r.kind for r in finding.recommendations] == expected

    def test_macos_sip_disabled(self):
        runner = FakeRunner()
        runner.script("csrutil", stdout="System Integrity Protection status: disabled.\n")
        finding = SystemFileProbe(runner=runner, platform_name=MACOS).collect({})
        assert finding.raw["sip_enabled"] is False
        assert "disabled" in finding.warnings[0].message

    def test_macos_sip_enabled(self):
        runner = FakeRunner()
        runner.script("csrutil", stdout="System Integrity Protection status: enabled.\n")
        finding = SystemFileProbe(runner=runner, platform_name=MACOS).collect({})
        assert finding.raw["sip_enabled"] is True
        assert finding.warnings == ()

    def test_linux_is_unsupported(self):
        finding = SystemFileProbe(runner=FakeRunner(), platform_name=LINUX).collect({})
        assert finding.raw["sfc_status"] == "unsupported"
        assert finding.error is None
