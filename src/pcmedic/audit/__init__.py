"""Audit ledger: append-only record of diagnostics and fix executions.

Ledgers::

    from pcmedic.audit import SqliteAuditLedger, MemoryAuditLedger

Writers::

    from pcmedic.audit import AuditRecorder
"""

from pcmedic.audit.entries import AuditEntry, EntryFilter, EntryType, Statistics
from pcmedic.audit.ledger import AuditLedger, MemoryAuditLedger, SqliteAuditLedger
from pcmedic.audit.recorder import AuditRecorder, truncate_output

__all__ = [
    "AuditEntry",
    "AuditLedger",
    "AuditRecorder",
    "EntryFilter",
    "EntryType",
    "MemoryAuditLedger",
    "SqliteAuditLedger",
    "Statistics",
    "truncate_output",
]
