"""Base class and parsing helpers shared by all probes."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from pcmedic.core.commands import CommandResult, CommandRunner, ShellCommandRunner
from pcmedic.core.models import Finding, ProbeWarning, Recommendation, Severity
from pcmedic.core.platform import current_platform

_PS_DATE_RE = re.compile(r"/Date\((-?\d+)[^)]*\)/")


class BaseProbe(ABC):
    """Abstract base class for all read-only probes.

    A probe runs opaque commands through the injected runner and returns a
    single :class:`Finding`. "No data" is a valid, non-error outcome; only
    conditions the probe cannot work around should end up in ``error``.
    """

    probe_kind: str = ""
    description: str = ""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        platform_name: str | None = None,
        timeout: float = 30.0,
    ):
        self.platform_name = platform_name or current_platform()
        self.runner = runner or ShellCommandRunner(self.platform_name, timeout)
        self.timeout = timeout

    @abstractmethod
    def collect(self, config: dict[str, Any]) -> Finding:
        """Run the probe with its step configuration."""
        ...

    def _run(self, command: str) -> CommandResult:
        return self.runner.run(command, timeout=self.timeout)

    def _make_finding(
        self,
        warnings: list[ProbeWarning] | None = None,
        recommendations: list[Recommendation] | None = None,
        raw: dict[str, Any] | None = None,
        errors: list[str] | None = None,
    ) -> Finding:
        """Helper to create a Finding with this probe's kind."""
        return Finding(
            probe_kind=self.probe_kind,
            warnings=tuple(warnings or ()),
            recommendations=tuple(recommendations or ()),
            raw=raw or {},
            error="; ".join(errors) if errors else None,
        )

    def _warning(
        self, message: str, severity: Severity = Severity.WARNING, source: str = ""
    ) -> ProbeWarning:
        return ProbeWarning(severity=severity, message=message, source=source or self.probe_kind)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_json_records(text: str) -> list[dict[str, Any]]:
    """Parse ``ConvertTo-Json`` output, which is an object for one row."""
    text = text.strip()
    if not text:
        return []
    parsed = json.loads(text)
    if isinstance(parsed, dict):
        return [parsed]
    if isinstance(parsed, list):
        return [row for row in parsed if isinstance(row, dict)]
    return []


def parse_timestamp(value: Any) -> datetime | None:
    """Parse the timestamp shapes PowerShell and the log tools emit.

    Handles ``/Date(1700000000000)/``, ISO-8601 strings and CIM
    ``yyyymmddHHMMSS.ffffff+zzz`` strings. Returns None if unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    text = str(value).strip()
    match = _PS_DATE_RE.search(text)
    if match:
        return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc)

    if re.fullmatch(r"\d{14}\.\d+[+-]\d+", text):
        return datetime.strptime(text[:14], "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def percent(part: float, whole: float) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, 1)
