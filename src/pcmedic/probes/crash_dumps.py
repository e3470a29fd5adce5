"""Crash-dump discovery probe."""

from __future__ import annotations

import glob
import logging
import os
import re
import time
from collections import Counter
from pathlib import Path
from typing import Any

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.core.platform import LINUX, MACOS, WINDOWS
from pcmedic.probes.base import BaseProbe

logger = logging.getLogger(__name__)

DUMP_SUFFIXES = (".dmp", ".mdmp", ".crash", ".ips", ".panic", ".hang")
MAX_REPORTED = 20
REPEAT_CRASH_THRESHOLD = 3

DEFAULT_LOCATIONS = {
    WINDOWS: [
        r"C:\Windows\Minidump",
        r"%LOCALAPPDATA%\CrashDumps",
        r"%APPDATA%\*\Saved\Crashes",
        r"%LOCALAPPDATA%\*\Crashes",
    ],
    MACOS: [
        "~/Library/Logs/DiagnosticReports",
        "/Library/Logs/DiagnosticReports",
        "~/Library/Logs/CrashReporter",
    ],
    LINUX: ["/var/crash", "/var/lib/systemd/coredump"],
}

_APP_NAME_RE = re.compile(r"^([A-Za-z][\w.\- ]*?)(?:[_\-.]\d|\.(?:crash|ips|dmp|mdmp|panic|hang)$)")


class CrashDumpProbe(BaseProbe):
    """Finds recent crash dumps and reports which applications keep crashing.

    Step config:
        locations:    Directories to search; may contain ``%VAR%``, ``$VAR``,
                      ``~`` and ``*`` wildcards. Defaults per platform.
        max_age_days: Ignore dumps older than this (30).
    """

    probe_kind = "crash_dumps"
    description = "Locate recent crash dump files"

    def collect(self, config: dict[str, Any]) -> Finding:
        max_age_days = float(config.get("max_age_days", 30))
        cutoff = time.time() - max_age_days * 86400
        locations = config.get("locations") or DEFAULT_LOCATIONS.get(self.platform_name, [])

        dumps: list[dict[str, Any]] = []
        searched = []
        for location in locations:
            for directory in expand_location(location):
                searched.append(str(directory))
                dumps.extend(_scan(directory, cutoff))

        dumps.sort(key=lambda d: d["modified"], reverse=True)
        per_app = Counter(d["app"] for d in dumps)

        warnings = []
        recommendations = []
        if dumps:
            warnings.append(self._warning(
                f"{len(dumps)} crash dump(s) in the last {max_age_days:g} days"
            ))
        for app, count in per_app.most_common():
            if count >= REPEAT_CRASH_THRESHOLD:
                warnings.append(self._warning(
                    f"{app} crashed {count} times", severity=Severity.CRITICAL
                ))
                recommendations.append(Recommendation(
                    kind="repair-crashing-app",
                    message=f"Update or reinstall {app}; check its drivers and dependencies.",
                    severity=Severity.CRITICAL,
                ))

        raw = {
            "locations_searched": searched,
            "dump_count": len(dumps),
            "by_app": dict(per_app),
            "dumps": dumps[:MAX_REPORTED],
        }
        return self._make_finding(warnings, recommendations, raw)


def expand_location(location: str) -> list[Path]:
    """Expand variables, ``~`` and wildcards into existing directories."""
    expanded = re.sub(
        r"%(\w+)%", lambda m: os.environ.get(m.group(1), m.group(0)), location
    )
    expanded = os.path.expanduser(os.path.expandvars(expanded))
    if "%" in expanded:
        return []  # unresolved variable
    if any(ch in expanded for ch in "*?["):
        return [Path(p) for p in sorted(glob.glob(expanded)) if os.path.isdir(p)]
    path = Path(expanded)
    return [path] if path.is_dir() else []


def _scan(directory: Path, cutoff: float) -> list[dict[str, Any]]:
    found = []
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        logger.debug("Could not list %s: %s", directory, e)
        return found
    for entry in entries:
        if entry.suffix.lower() not in DUMP_SUFFIXES and not entry.name.startswith("core"):
            continue
        try:
            stat = entry.stat()
        except OSError:
            continue
        if not entry.is_file() or stat.st_mtime < cutoff:
            continue
        found.append({
            "path": str(entry),
            "app": app_name(entry.name),
            "size_kb": round(stat.st_size / 1024, 1),
            "modified": stat.st_mtime,
        })
    return found


def app_name(filename: str) -> str:
    """Best-effort application name from a dump filename.

    ``Safari_2024-01-02-101112_host.crash`` -> ``Safari``,
    ``game.exe.1234.dmp`` -> ``game.exe``.
    """
    match = _APP_NAME_RE.match(filename)
    if match:
        return match.group(1)
    return Path(filename).stem
