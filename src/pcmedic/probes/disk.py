"""Storage-health probe: free space per volume and SMART status."""

from __future__ import annotations

import logging
import re
from typing import Any

import psutil

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.core.platform import LINUX, MACOS, WINDOWS
from pcmedic.probes.base import BaseProbe, parse_json_records, percent

logger = logging.getLogger(__name__)

_GB = 1024 ** 3

# Pseudo filesystems that never hold user data.
_SKIP_FSTYPES = {"squashfs", "tmpfs", "devtmpfs", "overlay", "autofs", "devfs"}


class DiskProbe(BaseProbe):
    """Checks free space on every mounted volume and disk SMART health.

    Step config:
        warning_percent:  Free-space percentage that triggers a warning (10).
        critical_percent: Free-space percentage that is critical (5).
        check_smart:      Query SMART/health status (True).
    """

    probe_kind = "disk_health"
    description = "Check disk space and SMART health"

    def collect(self, config: dict[str, Any]) -> Finding:
        warning_pct = float(config.get("warning_percent", 10))
        critical_pct = float(config.get("critical_percent", 5))
        warnings = []
        recommendations = []
        errors: list[str] = []

        volumes = self._volumes()
        for vol in volumes:
            free_pct = vol["percent_free"]
            if free_pct < critical_pct:
                warnings.append(self._warning(
                    f"Disk {vol['mountpoint']} is critically low on space "
                    f"({free_pct:.1f}% free)",
                    severity=Severity.CRITICAL,
                ))
            elif free_pct < warning_pct:
                warnings.append(self._warning(
                    f"Disk {vol['mountpoint']} is running low on space "
                    f"({free_pct:.1f}% free)",
                ))

        health: list[dict[str, Any]] = []
        if config.get("check_smart", True):
            try:
                health = self._health()
            except (ValueError, RuntimeError) as e:
                logger.warning("SMART query failed: %s", e)
                errors.append(f"SMART query failed: {e}")

        for disk in health:
            if disk["is_healthy"] is False:
                warnings.append(self._warning(
                    f"Disk \"{disk['name']}\" health status: {disk['status']}",
                    severity=Severity.CRITICAL,
                ))
                recommendations.append(Recommendation(
                    kind="disk-health-warning",
                    message=f"Back up data on {disk['name']} and plan a replacement.",
                    severity=Severity.CRITICAL,
                ))

        raw = {"volumes": volumes, "health": health, "smart_available": bool(health)}
        return self._make_finding(warnings, recommendations, raw, errors)

    def _volumes(self) -> list[dict[str, Any]]:
        volumes = []
        for part in psutil.disk_partitions(all=False):
            if part.fstype in _SKIP_FSTYPES or "cdrom" in part.opts:
                continue
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (PermissionError, OSError):
                continue  # unreadable or ejected volume
            volumes.append({
                "device": part.device,
                "mountpoint": part.mountpoint,
                "fstype": part.fstype,
                "total_gb": round(usage.total / _GB, 2),
                "free_gb": round(usage.free / _GB, 2),
                "percent_free": percent(usage.free, usage.total),
            })
        return volumes

    def _health(self) -> list[dict[str, Any]]:
        if self.platform_name == WINDOWS:
            return self._health_windows()
        if self.platform_name == MACOS:
            return self._health_macos()
        if self.platform_name == LINUX:
            return self._health_linux()
        return []

    def _health_windows(self) -> list[dict[str, Any]]:
        result = self._run(
            'powershell -Command "Get-PhysicalDisk | Select-Object FriendlyName, '
            'HealthStatus, OperationalStatus, MediaType | ConvertTo-Json"'
        )
        if not result.ok:
            raise RuntimeError(result.failure_reason)
        disks = []
        for row in parse_json_records(result.stdout):
            status = str(row.get("HealthStatus") or "Unknown")
            disks.append({
                "name": row.get("FriendlyName") or "disk",
                "status": status,
                "media_type": row.get("MediaType"),
                "is_healthy": status.lower() == "healthy" if status != "Unknown" else None,
            })
        return disks

    def _health_macos(self) -> list[dict[str, Any]]:
        result = self._run("diskutil info -all")
        if not result.ok:
            raise RuntimeError(result.failure_reason)
        disks = []
        name = None
        for line in result.stdout.splitlines():
            key, _, value = line.partition(":")
            key, value = key.strip(), value.strip()
            if key == "Device Identifier":
                name = value
            elif key == "SMART Status" and name:
                if value == "Not Supported":
                    continue
                disks.append({
                    "name": name,
                    "status": value,
                    "media_type": None,
                    "is_healthy": value == "Verified",
                })
        return disks

    def _health_linux(self) -> list[dict[str, Any]]:
        scan = self._run("smartctl --scan")
        if scan.exit_code == 127 or "not found" in scan.stderr:
            logger.info("smartctl not installed; skipping SMART checks")
            return []
        if not scan.ok:
            raise RuntimeError(scan.failure_reason)

        disks = []
        for line in scan.stdout.splitlines():
            device = line.split(" ", 1)[0].strip()
            if not device.startswith("/dev/"):
                continue
            health = self._run(f"smartctl -H {device}")
            match = re.search(r"(?:self-assessment test result|SMART Health Status):\s*(\S+)", health.stdout)
            if not match:
                continue
            status = match.group(1)
            disks.append({
                "name": device,
                "status": status,
                "media_type": None,
                "is_healthy": status in ("PASSED", "OK"),
            })
        return disks
