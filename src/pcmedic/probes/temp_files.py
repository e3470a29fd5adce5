"""Temporary-file probe: how much space caches and temp folders use."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.core.platform import LINUX, MACOS, WINDOWS
from pcmedic.probes.base import BaseProbe
from pcmedic.probes.crash_dumps import expand_location

logger = logging.getLogger(__name__)

_MB = 1024 ** 2

TOTAL_WARNING_MB = 10_000
TOTAL_CLEANUP_MB = 5_000
LOCATION_WARNING_MB = 5_000

DEFAULT_LOCATIONS = {
    WINDOWS: [
        r"%TEMP%",
        r"C:\Windows\Temp",
        r"%LOCALAPPDATA%\Microsoft\Windows\INetCache",
        r"C:\Windows\SoftwareDistribution\Download",
    ],
    MACOS: ["~/Library/Caches", "~/Library/Logs"],
    LINUX: ["~/.cache", "/var/tmp"],
}


class TempFileProbe(BaseProbe):
    """Measures temp and cache directories.

    Step config:
        locations:        Directories to measure (platform defaults plus the
                          interpreter's temp dir).
        max_files:        Stop counting a location after this many files (200000).
    """

    probe_kind = "temp_files"
    description = "Measure temporary files and caches"

    def collect(self, config: dict[str, Any]) -> Finding:
        locations = config.get("locations")
        if not locations:
            locations = [tempfile.gettempdir(), *DEFAULT_LOCATIONS.get(self.platform_name, [])]
        max_files = int(config.get("max_files", 200_000))

        measured: list[dict[str, Any]] = []
        seen: set[str] = set()
        for location in locations:
            for directory in expand_location(location):
                key = os.path.normcase(os.path.realpath(directory))
                if key in seen:
                    continue
                seen.add(key)
                size, count = directory_size(directory, max_files)
                if size:
                    measured.append({
                        "path": str(directory),
                        "size_mb": round(size / _MB, 1),
                        "file_count": count,
                    })

        total_mb = round(sum(m["size_mb"] for m in measured), 1)
        warnings = []
        recommendations = []
        cleanup = (
            "Run Disk Cleanup" if self.platform_name == WINDOWS else "Clear application caches"
        )
        if total_mb > TOTAL_WARNING_MB:
            warnings.append(self._warning(f"{total_mb:.0f} MB of temporary files found"))
            recommendations.append(Recommendation(
                kind="cleanup",
                message=f"{cleanup} to free up disk space.",
                severity=Severity.WARNING,
            ))
        elif total_mb > TOTAL_CLEANUP_MB:
            recommendations.append(Recommendation(
                kind="cleanup",
                message=f"{total_mb:.0f} MB of temporary files could be cleaned.",
            ))
        for m in measured:
            if m["size_mb"] > LOCATION_WARNING_MB:
                warnings.append(self._warning(
                    f"{m['path']} contains {m['size_mb']:.0f} MB", severity=Severity.INFO
                ))

        raw = {"locations": measured, "total_size_mb": total_mb}
        return self._make_finding(warnings, recommendations, raw)


def directory_size(root: Path, max_files: int = 200_000) -> tuple[int, int]:
    """Total bytes and file count under *root*, skipping unreadable entries."""
    total = 0
    count = 0
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        for name in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, name)).st_size
            except OSError:
                continue
            count += 1
            if count >= max_files:
                logger.debug("Stopped measuring %s after %d files", root, count)
                return total, count
    return total, count


def _log_walk_error(error: OSError) -> None:
    logger.debug("Skipping unreadable path: %s", error)
