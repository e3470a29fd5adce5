"""Driver/version probe: stale drivers and devices reporting errors."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.core.platform import LINUX, MACOS, WINDOWS
from pcmedic.probes.base import BaseProbe, parse_json_records, parse_timestamp

logger = logging.getLogger(__name__)

# Win32_PnPSignedDriver.DeviceClass values for the "focus" shorthands.
FOCUS_CLASSES = {
    "gpu": {"DISPLAY"},
    "audio": {"MEDIA", "AUDIOENDPOINT"},
    "network": {"NET"},
    "chipset": {"SYSTEM"},
    "storage": {"SCSIADAPTER", "HDC", "DISKDRIVE"},
    "usb": {"USB"},
}


class DriverProbe(BaseProbe):
    """Lists driver versions and flags stale or failing ones.

    Step config:
        focus:                  "all" or a list of FOCUS_CLASSES keys.
        max_age_days:           Driver date older than this is stale (730).
        check_problem_devices:  Report devices with an error code (True).
    """

    probe_kind = "drivers"
    description = "Verify driver versions and device status"

    def collect(self, config: dict[str, Any]) -> Finding:
        if self.platform_name == WINDOWS:
            return self._collect_windows(config)
        if self.platform_name == LINUX:
            return self._collect_linux(config)
        if self.platform_name == MACOS:
            return self._collect_macos()
        return self._make_finding(raw={"platform": self.platform_name, "drivers": []})

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def _collect_windows(self, config: dict[str, Any]) -> Finding:
        warnings = []
        recommendations = []
        errors: list[str] = []
        max_age = int(config.get("max_age_days", 730))
        classes = _focus_classes(config.get("focus", "all"))

        drivers: list[dict[str, Any]] = []
        result = self._run(
            'powershell -Command "Get-CimInstance Win32_PnPSignedDriver | '
            "Where-Object { $_.DeviceName } | Select-Object DeviceName, DeviceClass, "
            'DriverVersion, DriverDate, Manufacturer | ConvertTo-Json"'
        )
        rows: list[dict[str, Any]] = []
        if result.ok:
            try:
                rows = parse_json_records(result.stdout)
            except ValueError as e:
                logger.warning("Unreadable driver inventory: %s", e)
                errors.append(f"driver inventory unreadable: {e}")
        else:
            errors.append(f"driver inventory failed: {result.failure_reason}")

        now = datetime.now(timezone.utc)
        for row in rows:
            device_class = str(row.get("DeviceClass") or "").upper()
            if classes is not None and device_class not in classes:
                continue
            date = parse_timestamp(row.get("DriverDate"))
            age_days = (now - date).days if date else None
            drivers.append({
                "device": row.get("DeviceName"),
                "class": device_class,
                "version": row.get("DriverVersion"),
                "date": date.date().isoformat() if date else None,
                "age_days": age_days,
                "manufacturer": row.get("Manufacturer"),
            })
            if age_days is not None and age_days > max_age:
                warnings.append(self._warning(
                    f"{row.get('DeviceName')} driver is {age_days // 365} years old "
                    f"(version {row.get('DriverVersion')})",
                    severity=Severity.INFO if device_class not in ("DISPLAY", "NET") else Severity.WARNING,
                ))

        problem_devices: list[dict[str, Any]] = []
        if config.get("check_problem_devices", True):
            problems = self._run(
                'powershell -Command "Get-CimInstance Win32_PnPEntity | '
                "Where-Object { $_.ConfigManagerErrorCode -ne 0 } | "
                'Select-Object Name, PNPClass, ConfigManagerErrorCode, Status | ConvertTo-Json"'
            )
            problem_rows: list[dict[str, Any]] = []
            if problems.ok:
                try:
                    problem_rows = parse_json_records(problems.stdout)
                except ValueError as e:
                    logger.warning("Unreadable device status: %s", e)
                    errors.append(f"device status unreadable: {e}")
            else:
                errors.append(f"device status query failed: {problems.failure_reason}")
            for row in problem_rows:
                problem_devices.append({
                    "device": row.get("Name"),
                    "class": row.get("PNPClass"),
                    "error_code": row.get("ConfigManagerErrorCode"),
                    "status": row.get("Status"),
                })
                warnings.append(self._warning(
                    f"{row.get('Name') or 'Unknown device'} reports error code "
                    f"{row.get('ConfigManagerErrorCode')}",
                ))

        if problem_devices:
            recommendations.append(Recommendation(
                kind="reinstall-driver",
                message="Reinstall or update drivers for devices reporting errors.",
                severity=Severity.WARNING,
            ))

        raw = {"platform": WINDOWS, "drivers": drivers, "problem_devices": problem_devices}
        return self._make_finding(warnings, recommendations, raw, errors)

    # ------------------------------------------------------------------
    # Linux / macOS
    # ------------------------------------------------------------------

    def _collect_linux(self, config: dict[str, Any]) -> Finding:
        warnings = []
        errors: list[str] = []
        kernel = self._run("uname -r")
        raw: dict[str, Any] = {
            "platform": LINUX,
            "kernel": kernel.stdout.strip() if kernel.ok else None,
            "devices_without_driver": [],
        }

        if config.get("check_problem_devices", True):
            lspci = self._run("lspci -k")
            if lspci.ok:
                missing = _devices_without_driver(lspci.stdout)
                raw["devices_without_driver"] = missing
                for device in missing:
                    warnings.append(self._warning(
                        f"No kernel driver in use for {device}", severity=Severity.INFO
                    ))
            elif lspci.exit_code != 127:
                errors.append(f"lspci failed: {lspci.failure_reason}")
        return self._make_finding(warnings, raw=raw, errors=errors)

    def _collect_macos(self) -> Finding:
        version = self._run("sw_vers -productVersion")
        raw = {
            "platform": MACOS,
            "os_version": version.stdout.strip() if version.ok else None,
        }
        return self._make_finding(raw=raw)


def _focus_classes(focus: Any) -> set[str] | None:
    if focus == "all" or not focus:
        return None
    classes: set[str] = set()
    for key in focus:
        classes |= FOCUS_CLASSES.get(str(key).lower(), {str(key).upper()})
    return classes


def _devices_without_driver(lspci_output: str) -> list[str]:
    """Return device descriptions from ``lspci -k`` with no driver line."""
    missing = []
    current: str | None = None
    has_driver = False
    for line in lspci_output.splitlines():
        if line and not line[0].isspace():
            if current and not has_driver:
                missing.append(current)
            current = line.split(" ", 1)[1] if " " in line else line
            has_driver = False
        elif "Kernel driver in use" in line:
            has_driver = True
    if current and not has_driver:
        missing.append(current)
    return missing
