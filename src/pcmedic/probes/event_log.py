"""Log-pattern probe: system error logs and recurring-issue patterns."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.core.platform import LINUX, MACOS, WINDOWS
from pcmedic.probes.base import BaseProbe, parse_json_records, parse_timestamp
from pcmedic.probes.patterns import Event, detect_patterns

logger = logging.getLogger(__name__)

MAX_EVENTS_PER_LOG = 500
MAX_MESSAGE_CHARS = 500
MAX_RAW_EVENTS = 50

_SYSLOG_LINE_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2}).*?\s+([\w.\-]+)(?:\[\d+\])?:\s*(.*)$"
)

_WINDOWS_ENTRY_TYPES = {"error": "Error", "critical": "Error", "warning": "Warning"}


class EventLogProbe(BaseProbe):
    """Reads recent error entries from the OS log and detects patterns.

    Step config:
        log_names:       Windows event logs to read (default Application, System).
        levels:          Entry levels to include (default Error).
        time_range_days: How far back to look (default 7).
        find_patterns:   Run the pattern detector (default True).
    """

    probe_kind = "event_logs"
    description = "Scan system logs for recurring errors"

    def __init__(self, *args: Any, now: Callable[[], datetime] | None = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._now = now or (lambda: datetime.now(timezone.utc))

    def collect(self, config: dict[str, Any]) -> Finding:
        days = int(config.get("time_range_days", 7))
        now = self._now()
        events: list[Event] = []
        errors: list[str] = []

        if self.platform_name == WINDOWS:
            levels = config.get("levels", ["Error"])
            for log_name in config.get("log_names", ["Application", "System"]):
                try:
                    events.extend(self._query_windows(log_name, levels, days, now))
                except (ValueError, RuntimeError) as e:
                    logger.warning("Could not read %s event log: %s", log_name, e)
                    errors.append(f"{log_name}: {e}")
        elif self.platform_name in (MACOS, LINUX):
            query = self._query_macos if self.platform_name == MACOS else self._query_journal
            try:
                events.extend(query(days, now))
            except (ValueError, RuntimeError) as e:
                logger.warning("Could not read system log: %s", e)
                errors.append(str(e))
        else:
            logger.info("No system log reader for platform %s", self.platform_name)

        patterns = detect_patterns(events) if config.get("find_patterns", True) else []

        warnings = []
        recommendations = []
        for p in patterns:
            if p.severity is Severity.INFO:
                continue
            warnings.append(
                self._warning(
                    f"{p.key} ({p.recent_occurrences} times in the last 2 days, "
                    f"{p.occurrences} total)",
                    severity=p.severity,
                    source="event_logs",
                )
            )
        if any(p.severity is Severity.CRITICAL for p in patterns):
            recommendations.append(
                Recommendation(
                    kind="investigate-recurring-error",
                    message="A recurring error is firing many times a day; "
                    "check the source application or driver first.",
                    severity=Severity.CRITICAL,
                )
            )

        recent_events = [e for e in events if e.is_recent]
        raw = {
            "platform": self.platform_name,
            "time_range_days": days,
            "event_count": len(events),
            "recent_event_count": len(recent_events),
            "patterns": [p.to_dict() for p in patterns],
            "recent_events": [e.to_dict() for e in recent_events[:MAX_RAW_EVENTS]],
        }
        return self._make_finding(warnings, recommendations, raw, errors)

    # ------------------------------------------------------------------
    # Platform readers
    # ------------------------------------------------------------------

    def _query_windows(
        self, log_name: str, levels: list[str], days: int, now: datetime
    ) -> list[Event]:
        entry_types = sorted(
            {_WINDOWS_ENTRY_TYPES.get(level.lower(), "Error") for level in levels}
        )
        command = (
            f"powershell -Command \"Get-EventLog -LogName {log_name} "
            f"-EntryType {','.join(entry_types)} -Newest {MAX_EVENTS_PER_LOG} "
            f"-After (Get-Date).AddDays(-{days}) | "
            f"Select-Object TimeGenerated, Source, Message | ConvertTo-Json\""
        )
        result = self._run(command)
        if not result.ok:
            # Get-EventLog exits non-zero when nothing matches the filter.
            if "No matches found" in result.stderr:
                return []
            raise RuntimeError(result.failure_reason)

        events = []
        for row in parse_json_records(result.stdout):
            ts = parse_timestamp(row.get("TimeGenerated"))
            if ts is None:
                continue
            events.append(
                Event.from_timestamp(
                    source=str(row.get("Source") or "unknown"),
                    message=str(row.get("Message") or "")[:MAX_MESSAGE_CHARS],
                    timestamp=ts,
                    now=now,
                    log_name=log_name,
                )
            )
        return events

    def _query_macos(self, days: int, now: datetime) -> list[Event]:
        command = (
            "log show --predicate 'eventMessage contains \"error\" OR "
            "eventMessage contains \"fault\" OR eventMessage contains \"crash\"' "
            f"--style syslog --last {days * 24}h 2>/dev/null | head -{MAX_EVENTS_PER_LOG}"
        )
        result = self._run(command)
        if not result.ok:
            raise RuntimeError(result.failure_reason)

        events = []
        for line in result.stdout.splitlines():
            match = _SYSLOG_LINE_RE.match(line.strip())
            if not match:
                continue
            # syslog style prints local time without an offset
            ts = datetime.fromisoformat(match.group(1).replace(" ", "T", 1)).astimezone()
            events.append(
                Event.from_timestamp(
                    source=match.group(2),
                    message=match.group(3)[:MAX_MESSAGE_CHARS],
                    timestamp=ts,
                    now=now,
                    log_name="System",
                )
            )
        return events

    def _query_journal(self, days: int, now: datetime) -> list[Event]:
        command = (
            f"journalctl --priority=err --since '-{days}d' --output=json "
            f"--no-pager --lines={MAX_EVENTS_PER_LOG}"
        )
        result = self._run(command)
        if not result.ok:
            raise RuntimeError(result.failure_reason)

        events = []
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            message = entry.get("MESSAGE")
            micros = entry.get("__REALTIME_TIMESTAMP")
            # Binary messages arrive as byte arrays; skip them.
            if not isinstance(message, str) or micros is None:
                continue
            ts = datetime.fromtimestamp(int(micros) / 1_000_000, tz=timezone.utc)
            source = entry.get("SYSLOG_IDENTIFIER") or entry.get("_COMM") or "kernel"
            events.append(
                Event.from_timestamp(
                    source=str(source),
                    message=message[:MAX_MESSAGE_CHARS],
                    timestamp=ts,
                    now=now,
                    log_name="journal",
                )
            )
        return events
