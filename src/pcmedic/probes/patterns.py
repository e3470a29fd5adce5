"""Recurring-issue detection over system log events.

Turns a flat list of timestamped log events into de-duplicated
:class:`Pattern` objects. A group of events only becomes a pattern when it
is still happening: either several times in the last two days, or
repeatedly over the window with at least one recent occurrence. Single
old errors are noise and are dropped.

The detector is a pure function of its input. Feeding the same events in
any order gives the same patterns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

from pcmedic.core.models import Severity

KEY_MESSAGE_CHARS = 100
RECENT_DAYS = 2.0
OLD_DAYS = 7.0


class Timeframe(Enum):
    TODAY = "today"
    RECENT = "recent"
    OLDER = "older"


@dataclass(frozen=True)
class Event:
    """One system-log entry, aged relative to the collection time."""

    source: str
    message: str
    timestamp: datetime
    hours_ago: int
    days_ago: float
    log_name: str = ""
    # Unrounded age; days_ago is rounded for display only.
    age_days: float | None = field(default=None, repr=False)

    @property
    def _age(self) -> float:
        return self.days_ago if self.age_days is None else self.age_days

    @property
    def is_recent(self) -> bool:
        return self._age < RECENT_DAYS

    @property
    def is_old(self) -> bool:
        return self._age > OLD_DAYS

    @property
    def key(self) -> str:
        return f"{self.source}:{self.message[:KEY_MESSAGE_CHARS]}"

    @classmethod
    def from_timestamp(
        cls,
        source: str,
        message: str,
        timestamp: datetime,
        now: datetime | None = None,
        log_name: str = "",
    ) -> Event:
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        hours = (now - timestamp).total_seconds() / 3600
        return cls(
            source=source,
            message=message,
            timestamp=timestamp,
            hours_ago=round(hours),
            days_ago=round(hours / 24, 1),
            log_name=log_name,
            age_days=hours / 24,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "log_name": self.log_name,
            "source": self.source,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "hours_ago": self.hours_ago,
            "days_ago": self.days_ago,
            "is_recent": self.is_recent,
            "is_old": self.is_old,
        }


@dataclass(frozen=True)
class Pattern:
    """A recurring issue surfaced from grouped events."""

    key: str
    occurrences: int
    recent_occurrences: int
    oldest_days_ago: float
    newest_days_ago: float
    is_ongoing: bool
    severity: Severity
    timeframe: Timeframe

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.key,
            "occurrences": self.occurrences,
            "recent_occurrences": self.recent_occurrences,
            "oldest_days_ago": self.oldest_days_ago,
            "newest_days_ago": self.newest_days_ago,
            "is_ongoing": self.is_ongoing,
            "severity": self.severity.value,
            "timeframe": self.timeframe.value,
        }


# ---------------------------------------------------------------------------
# Classification rules
# ---------------------------------------------------------------------------


def is_significant(occurrences: int, recent_occurrences: int) -> bool:
    """Noise filter: is this group still an active problem?"""
    current_issue = recent_occurrences >= 2
    recurring_issue = occurrences >= 3 and recent_occurrences >= 1
    return current_issue or recurring_issue


def classify_severity(recent_occurrences: int) -> Severity:
    if recent_occurrences >= 5:
        return Severity.CRITICAL
    if recent_occurrences >= 2:
        return Severity.WARNING
    return Severity.INFO


def classify_timeframe(newest_days_ago: float) -> Timeframe:
    if newest_days_ago < 1:
        return Timeframe.TODAY
    if newest_days_ago < RECENT_DAYS:
        return Timeframe.RECENT
    return Timeframe.OLDER


_SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}


def detect_patterns(events: Iterable[Event]) -> list[Pattern]:
    """Group *events* by key and return the significant patterns.

    Output is sorted by severity, then recent occurrences (descending),
    then key, so it never depends on input order.
    """
    groups: dict[str, list[Event]] = {}
    for event in events:
        groups.setdefault(event.key, []).append(event)

    patterns: list[Pattern] = []
    for key, group in groups.items():
        occurrences = len(group)
        recent = sum(1 for e in group if e.is_recent)
        if not is_significant(occurrences, recent):
            continue

        ages = [e.days_ago for e in group]
        newest = min(ages)
        patterns.append(
            Pattern(
                key=key,
                occurrences=occurrences,
                recent_occurrences=recent,
                oldest_days_ago=max(ages),
                newest_days_ago=newest,
                # Seen recently and more than once: still happening.
                is_ongoing=recent > 0 and occurrences > 1,
                severity=classify_severity(recent),
                timeframe=classify_timeframe(newest),
            )
        )

    patterns.sort(
        key=lambda p: (_SEVERITY_RANK[p.severity], -p.recent_occurrences, p.key)
    )
    return patterns
