"""System-file integrity probe: reads the last SFC/DISM verdicts, never repairs."""

from __future__ import annotations

import logging
from typing import Any

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.core.platform import MACOS, WINDOWS
from pcmedic.probes.base import BaseProbe

logger = logging.getLogger(__name__)

CBS_LOG = r"C:\Windows\Logs\CBS\CBS.log"

# Checked newest line first; the first match is the latest scan's verdict.
SFC_VERDICTS = (
    ("did not find any integrity violations", "healthy", None),
    ("no integrity violations", "healthy", None),
    ("found corrupt files and successfully repaired them", "healthy",
     "Previous corruption was found and repaired"),
    ("found corrupt files but was unable to fix", "corruption-unrepairable", None),
    ("could not perform", "scan-incomplete",
     "SFC scan did not complete; it may require admin privileges"),
)


class SystemFileProbe(BaseProbe):
    """Reports system file integrity from existing scan logs.

    Step config:
        check_component_store:  Also run ``DISM /ScanHealth`` (True).
        recommend_preventive:   Suggest a scan when none is logged (False).
    """

    probe_kind = "system_files"
    description = "Check system file integrity"

    def collect(self, config: dict[str, Any]) -> Finding:
        if self.platform_name == WINDOWS:
            return self._collect_windows(config)
        if self.platform_name == MACOS:
            return self._collect_macos()
        return self._make_finding(raw={"platform": self.platform_name, "sfc_status": "unsupported"})

    def _collect_windows(self, config: dict[str, Any]) -> Finding:
        warnings = []
        recommendations = []
        raw: dict[str, Any] = {"platform": WINDOWS, "note": None, "dism_status": None}

        result = self._run(
            f"powershell -Command \"Get-Content '{CBS_LOG}' -Tail 1000 | Select-String -Pattern "
            "'Beginning system scan|Verification complete|no integrity violations|did not find|"
            "Windows Resource Protection found corrupt|Windows Resource Protection could not' | "
            'Select-Object -Last 10"'
        )
        if result.ok:
            raw["sfc_status"], raw["note"] = sfc_verdict(result.stdout)
        else:
            logger.debug("CBS log unreadable: %s", result.failure_reason)
            raw["sfc_status"] = "log-not-accessible"
            raw["note"] = "CBS.log not accessible; it may need admin privileges"

        if config.get("check_component_store", True):
            dism = self._run('powershell -Command "DISM /Online /Cleanup-Image /ScanHealth"')
            if not dism.ok:
                raw["dism_status"] = "scan-failed"
            elif "No component store corruption detected" in dism.stdout:
                raw["dism_status"] = "healthy"
            elif "corruption" in dism.stdout.lower():
                raw["dism_status"] = "corruption-detected"

        # A repaired past corruption is not a current problem.
        if raw["sfc_status"] == "corruption-unrepairable":
            warnings.append(self._warning(
                "System files are corrupted and could not be repaired automatically",
                severity=Severity.CRITICAL,
            ))
            recommendations.append(Recommendation(
                kind="system-repair",
                message="Run DISM /RestoreHealth followed by SFC /scannow to repair system files.",
                severity=Severity.CRITICAL,
            ))
        elif raw["sfc_status"] == "scan-incomplete":
            warnings.append(self._warning(
                "System file scan did not complete", severity=Severity.INFO
            ))

        if raw["dism_status"] == "corruption-detected":
            warnings.append(self._warning("Windows component store has corruption"))
            recommendations.append(Recommendation(
                kind="dism-repair",
                message="Run DISM /RestoreHealth to repair the Windows image.",
                severity=Severity.WARNING,
            ))

        if raw["sfc_status"] == "no-recent-scan" and config.get("recommend_preventive", False):
            recommendations.append(Recommendation(
                kind="preventive",
                message="Run an SFC scan to verify system file integrity.",
            ))
        return self._make_finding(warnings, recommendations, raw)

    def _collect_macos(self) -> Finding:
        result = self._run("csrutil status")
        if not result.ok:
            return self._make_finding(
                raw={"platform": MACOS, "sip_enabled": None},
                errors=[f"csrutil failed: {result.failure_reason}"],
            )
        enabled = "enabled" in result.stdout.lower() and "disabled" not in result.stdout.lower()
        warnings = []
        if not enabled:
            warnings.append(self._warning("System Integrity Protection is disabled"))
        return self._make_finding(warnings, raw={"platform": MACOS, "sip_enabled": enabled})


def sfc_verdict(log_tail: str) -> tuple[str, str | None]:
    """Status and note for the most recent SFC conclusion in *log_tail*."""
    for line in reversed(log_tail.strip().splitlines()):
        for needle, status, note in SFC_VERDICTS:
            if needle in line:
                return status, note
    return "no-recent-scan", "No recent SFC scan found in logs"
