"""Audit entry model."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class EntryType(enum.Enum):
    DIAGNOSTIC_START = "DIAGNOSTIC_START"
    DIAGNOSTIC_COMPLETE = "DIAGNOSTIC_COMPLETE"
    DIAGNOSTIC_ERROR = "DIAGNOSTIC_ERROR"
    FIX_START = "FIX_START"
    FIX_PROGRESS = "FIX_PROGRESS"
    FIX_SUCCESS = "FIX_SUCCESS"
    FIX_FAILURE = "FIX_FAILURE"
    SAFETY_CHECK = "SAFETY_CHECK"
    RESTORE_POINT_CREATED = "RESTORE_POINT_CREATED"
    RESTORE_POINT_FAILED = "RESTORE_POINT_FAILED"
    ROLLBACK = "ROLLBACK"


@dataclass(frozen=True)
class AuditEntry:
    """One immutable ledger record.

    Entries are never edited. A correction is a new entry.
    """

    type: EntryType
    data: dict[str, Any] = field(default_factory=dict)
    session_id: str | None = None
    status: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "sessionId": self.session_id,
            "status": self.status,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEntry:
        return cls(
            id=data["id"],
            type=EntryType(data["type"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            session_id=data.get("sessionId"),
            status=data.get("status"),
            data=data.get("data") or {},
        )


@dataclass(frozen=True)
class EntryFilter:
    """Criteria for :meth:`AuditLedger.query`. Unset fields match everything."""

    types: tuple[EntryType, ...] = ()
    session_id: str | None = None
    since: datetime | None = None
    limit: int | None = None
    newest_first: bool = False

    def matches(self, entry: AuditEntry) -> bool:
        if self.types and entry.type not in self.types:
            return False
        if self.session_id is not None and entry.session_id != self.session_id:
            return False
        if self.since is not None and entry.timestamp < self.since:
            return False
        return True


@dataclass(frozen=True)
class Statistics:
    total_diagnostics: int = 0
    total_fixes_recommended: int = 0
    total_fixes_executed: int = 0
    total_fixes_successful: int = 0
    total_fixes_failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalDiagnostics": self.total_diagnostics,
            "totalFixesRecommended": self.total_fixes_recommended,
            "totalFixesExecuted": self.total_fixes_executed,
            "totalFixesSuccessful": self.total_fixes_successful,
            "totalFixesFailed": self.total_fixes_failed,
        }


def counter_deltas(entry: AuditEntry) -> dict[str, int]:
    """Statistics increments implied by appending *entry*."""
    if entry.type is EntryType.DIAGNOSTIC_COMPLETE:
        return {
            "total_diagnostics": 1,
            "total_fixes_recommended": int(entry.data.get("fix_count", 0)),
        }
    if entry.type is EntryType.FIX_SUCCESS:
        return {"total_fixes_executed": 1, "total_fixes_successful": 1}
    if entry.type is EntryType.FIX_FAILURE:
        return {"total_fixes_executed": 1, "total_fixes_failed": 1}
    return {}
