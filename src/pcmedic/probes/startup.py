"""Startup-program probe: what launches at login and slows boot."""

from __future__ import annotations

import logging
from typing import Any

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.core.platform import LINUX, MACOS, WINDOWS
from pcmedic.probes.base import BaseProbe, parse_json_records
from pcmedic.probes.crash_dumps import expand_location

logger = logging.getLogger(__name__)

TOO_MANY = 20

# Name fragments of programs known to add noticeable startup load.
HEAVY_KEYWORDS = (
    "adobe", "java", "quicktime", "itunes helper", "skype",
    "realplayer", "apple push", "spotify", "steam", "discord",
)

# (directory, user label, file suffix)
AGENT_DIRECTORIES = {
    MACOS: [
        ("~/Library/LaunchAgents", "Current User", ".plist"),
        ("/Library/LaunchAgents", "All Users", ".plist"),
    ],
    LINUX: [
        ("~/.config/autostart", "Current User", ".desktop"),
        ("/etc/xdg/autostart", "All Users", ".desktop"),
    ],
}


class StartupProgramProbe(BaseProbe):
    """Lists programs registered to run at startup.

    Step config:
        directories:  ``[path, user, suffix]`` entries overriding the
                      platform's launch-agent / autostart directories.
    """

    probe_kind = "startup_programs"
    description = "List programs that run at startup"

    def collect(self, config: dict[str, Any]) -> Finding:
        errors: list[str] = []
        if self.platform_name == WINDOWS:
            programs = self._windows_programs(errors)
        else:
            directories = config.get("directories") or AGENT_DIRECTORIES.get(self.platform_name, [])
            programs = _agent_files(directories)
            if self.platform_name == MACOS:
                programs.extend(self._login_items())

        heavy = [p for p in programs if _is_heavy(p["name"])]
        warnings = []
        recommendations = []
        if len(programs) > TOO_MANY:
            warnings.append(self._warning(
                f"{len(programs)} programs set to run at startup (may slow boot time)"
            ))
            recommendations.append(Recommendation(
                kind="startup",
                message="Disable unnecessary startup programs to improve boot speed.",
                severity=Severity.WARNING,
            ))
        if heavy:
            recommendations.append(Recommendation(
                kind="startup-optimization",
                message=f"Found {len(heavy)} resource-intensive startup programs that could be disabled.",
            ))

        raw = {
            "programs": programs,
            "total_count": len(programs),
            "high_impact": [p["name"] for p in heavy],
        }
        return self._make_finding(warnings, recommendations, raw, errors)

    def _windows_programs(self, errors: list[str]) -> list[dict[str, Any]]:
        result = self._run(
            'powershell -Command "Get-CimInstance Win32_StartupCommand | '
            'Select-Object Name, Command, Location, User | ConvertTo-Json"'
        )
        if not result.ok:
            errors.append(f"startup command query failed: {result.failure_reason}")
            return []
        try:
            rows = parse_json_records(result.stdout)
        except ValueError as e:
            logger.warning("Unreadable startup command list: %s", e)
            errors.append(f"startup command list unreadable: {e}")
            return []
        return [
            {
                "name": row.get("Name") or "",
                "command": row.get("Command"),
                "location": row.get("Location"),
                "user": row.get("User") or "All Users",
            }
            for row in rows
        ]

    def _login_items(self) -> list[dict[str, Any]]:
        result = self._run(
            "osascript -e 'tell application \"System Events\" to get the name of every login item'"
        )
        if not result.ok:
            # Needs automation permission; launch agents still count.
            logger.debug("Login items unavailable: %s", result.failure_reason)
            return []
        return [
            {"name": item.strip(), "command": "Login Item",
             "location": "System Settings", "user": "Current User"}
            for item in result.stdout.strip().split(",")
            if item.strip()
        ]


def _agent_files(directories: list[Any]) -> list[dict[str, Any]]:
    programs = []
    for location, user, suffix in directories:
        for directory in expand_location(location):
            try:
                entries = sorted(directory.iterdir())
            except OSError as e:
                logger.debug("Could not list %s: %s", directory, e)
                continue
            for entry in entries:
                if entry.suffix != suffix:
                    continue
                programs.append({
                    "name": entry.stem,
                    "command": "LaunchAgent" if suffix == ".plist" else "Autostart entry",
                    "location": location,
                    "user": user,
                })
    return programs


def _is_heavy(name: str) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in HEAVY_KEYWORDS)
