"""Recent-changes probe: updates and software installs that may line up with a problem."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pcmedic.core.models import Finding, Recommendation
from pcmedic.core.platform import LINUX, WINDOWS
from pcmedic.probes.base import BaseProbe, parse_json_records, parse_timestamp

logger = logging.getLogger(__name__)

# IUpdateHistoryEntry.ResultCode for a successful install.
UPDATE_SUCCEEDED = 2
VERY_RECENT_DAYS = 3
RECENT_INSTALL_DAYS = 7

_MSI_PRODUCT_RE = re.compile(r"Product: (.+?) --")
_DPKG_LINE_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) (install|upgrade|remove|purge) (\S+)"
)
DPKG_ACTIONS = {"install": "install", "upgrade": "update", "remove": "uninstall", "purge": "uninstall"}


class RecentChangeProbe(BaseProbe):
    """Collects OS updates and package changes from the last few days.

    Step config:
        days:          Look-back window (30).
        include:       Any of "windows-updates", "software" (both).
        package_log:   dpkg log to read on Linux (/var/log/dpkg.log).
    """

    probe_kind = "recent_changes"
    description = "Review recent updates and software changes"

    def collect(self, config: dict[str, Any]) -> Finding:
        days = int(config.get("days", 30))
        include = set(config.get("include") or ("windows-updates", "software"))
        errors: list[str] = []
        now = datetime.now(timezone.utc)

        updates: list[dict[str, Any]] = []
        installs: list[dict[str, Any]] = []
        if self.platform_name == WINDOWS:
            if "windows-updates" in include:
                updates = self._windows_updates(now, days, errors)
            if "software" in include:
                installs = self._msi_installs(now, days, errors)
        elif self.platform_name == LINUX and "software" in include:
            installs = _dpkg_changes(
                Path(config.get("package_log", "/var/log/dpkg.log")), now, days
            )

        warnings = []
        recommendations = []
        failed = [u for u in updates if not u["success"]]
        if failed:
            titles = ", ".join(u["title"] for u in failed[:3])
            warnings.append(self._warning(
                f"{len(failed)} Windows updates failed to install ({titles})"
            ))
            recommendations.append(Recommendation(
                kind="windows-update",
                message="Retry failed Windows updates or run the Windows Update troubleshooter.",
            ))
        very_recent = [u for u in updates if u["days_ago"] <= VERY_RECENT_DAYS]
        if very_recent:
            recommendations.append(Recommendation(
                kind="recent-update-correlation",
                message=f"{len(very_recent)} updates installed in the last {VERY_RECENT_DAYS} days "
                        "may be related to recent issues.",
            ))
        recent_software = [
            i for i in installs if i["days_ago"] <= RECENT_INSTALL_DAYS and i["action"] == "install"
        ]
        if recent_software:
            recommendations.append(Recommendation(
                kind="recent-software",
                message=f"{len(recent_software)} programs were installed recently; "
                        "check whether the problem started after installation.",
            ))

        raw = {"platform": self.platform_name, "updates": updates, "installs": installs}
        return self._make_finding(warnings, recommendations, raw, errors)

    def _windows_updates(
        self, now: datetime, days: int, errors: list[str]
    ) -> list[dict[str, Any]]:
        result = self._run(
            'powershell -Command "$s = New-Object -ComObject Microsoft.Update.Session; '
            "$q = $s.CreateUpdateSearcher(); $n = $q.GetTotalHistoryCount(); "
            "$q.QueryHistory(0, [Math]::Min(50, $n)) | "
            'Select-Object Title, Date, ResultCode | ConvertTo-Json"'
        )
        if not result.ok:
            errors.append(f"update history query failed: {result.failure_reason}")
            return []
        try:
            rows = parse_json_records(result.stdout)
        except ValueError as e:
            logger.warning("Unreadable update history: %s", e)
            errors.append(f"update history unreadable: {e}")
            return []

        updates = []
        for row in rows:
            date = parse_timestamp(row.get("Date"))
            if date is None:
                continue
            days_ago = (now - date).days
            if days_ago > days:
                continue
            updates.append({
                "title": row.get("Title") or "Unknown update",
                "date": date.date().isoformat(),
                "days_ago": days_ago,
                "success": row.get("ResultCode") == UPDATE_SUCCEEDED,
                "result_code": row.get("ResultCode"),
            })
        return updates

    def _msi_installs(
        self, now: datetime, days: int, errors: list[str]
    ) -> list[dict[str, Any]]:
        result = self._run(
            'powershell -Command "Get-EventLog -LogName Application -Source MsiInstaller '
            f"-Newest 50 -After (Get-Date).AddDays(-{days}) -ErrorAction SilentlyContinue | "
            'Select-Object TimeGenerated, Message | ConvertTo-Json"'
        )
        if not result.ok:
            errors.append(f"installer log query failed: {result.failure_reason}")
            return []
        try:
            rows = parse_json_records(result.stdout)
        except ValueError as e:
            logger.warning("Unreadable installer log: %s", e)
            errors.append(f"installer log unreadable: {e}")
            return []

        installs = []
        for row in rows:
            date = parse_timestamp(row.get("TimeGenerated"))
            if date is None:
                continue
            message = str(row.get("Message") or "")
            match = _MSI_PRODUCT_RE.search(message)
            installs.append({
                "program": match.group(1) if match else "Unknown",
                "date": date.date().isoformat(),
                "days_ago": (now - date).days,
                "action": _msi_action(message),
            })
        return installs


def _msi_action(message: str) -> str:
    if "removal" in message or "uninstalled" in message:
        return "uninstall"
    if "Installation completed" in message or "successfully installed" in message:
        return "install"
    return "update"


def _dpkg_changes(log_path: Path, now: datetime, days: int) -> list[dict[str, Any]]:
    """Package installs, upgrades and removals from a dpkg log."""
    try:
        lines = log_path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        # Not a dpkg system, or unreadable.
        logger.debug("No package log at %s: %s", log_path, e)
        return []

    changes = []
    for line in lines:
        match = _DPKG_LINE_RE.match(line)
        if not match:
            continue
        # dpkg writes local time.
        stamp = datetime.strptime(match.group(1), "%Y-%m-%d %H:%M:%S").astimezone(timezone.utc)
        days_ago = (now - stamp).days
        if days_ago > days:
            continue
        changes.append({
            "program": match.group(3).split(":")[0],
            "date": stamp.date().isoformat(),
            "days_ago": days_ago,
            "action": DPKG_ACTIONS[match.group(2)],
        })
    return changes
