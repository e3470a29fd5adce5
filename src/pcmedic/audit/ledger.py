"""Append-only audit ledger with running statistics.

Two backends share one interface:

* :class:`SqliteAuditLedger` persists to ``.pcmedic/audit.db``. Payloads
  are optionally Fernet-encrypted at rest.
* :class:`MemoryAuditLedger` keeps everything in process, for tests and
  embedding callers.

Statistics are updated in the same transaction as the entry that implies
them, so ``executed == successful + failed`` holds after every append.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pcmedic.audit.entries import (
    AuditEntry,
    EntryFilter,
    EntryType,
    Statistics,
    counter_deltas,
)
from pcmedic.core.crypto import PayloadCipher
from pcmedic.core.errors import LedgerError

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1

_DB_FILENAME = "audit.db"

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS entries (
    seq        INTEGER PRIMARY KEY AUTOINCREMENT,
    id         TEXT NOT NULL UNIQUE,
    type       TEXT NOT NULL,
    timestamp  TEXT NOT NULL,
    session_id TEXT,
    status     TEXT,
    payload    BLOB NOT NULL,
    encrypted  INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS statistics (
    name  TEXT PRIMARY KEY,
    value INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_entries_session ON entries(session_id);
CREATE INDEX IF NOT EXISTS idx_entries_type ON entries(type);
"""

_COUNTERS = (
    "total_diagnostics",
    "total_fixes_recommended",
    "total_fixes_executed",
    "total_fixes_successful",
    "total_fixes_failed",
)


class AuditLedger(ABC):
    """Interface shared by all ledger backends."""

    def open(self) -> None:
        """Acquire the backing store. Idempotent."""

    def close(self) -> None:
        """Release the backing store. Idempotent."""

    def __enter__(self) -> AuditLedger:
        self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @abstractmethod
    def append(self, entry: AuditEntry) -> AuditEntry:
        """Durably record *entry* and update statistics atomically."""

    @abstractmethod
    def query(self, entry_filter: EntryFilter | None = None) -> list[AuditEntry]:
        """Entries matching *entry_filter*, in append order unless
        ``newest_first`` is set."""

    @abstractmethod
    def statistics(self) -> Statistics:
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry and reset every counter in one step."""

    def session_entries(self, session_id: str) -> list[AuditEntry]:
        return self.query(EntryFilter(session_id=session_id))

    def recent(self, limit: int = 50) -> list[AuditEntry]:
        """The *limit* newest entries, newest first."""
        return self.query(EntryFilter(limit=limit, newest_first=True))

    def export(self) -> dict[str, Any]:
        return {
            "version": EXPORT_VERSION,
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "statistics": self.statistics().to_dict(),
            "logs": [e.to_dict() for e in self.query()],
        }


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------


class SqliteAuditLedger(AuditLedger):
    """Thread-safe SQLite ledger.

    Usage::

        with SqliteAuditLedger(get_pcmedic_dir()) as ledger:
            ledger.append(AuditEntry(EntryType.DIAGNOSTIC_START, {...}))
            print(ledger.statistics())
    """

    def __init__(self, state_dir: Path, encrypt: bool = False) -> None:
        self._db_path = state_dir / _DB_FILENAME
        self._cipher = PayloadCipher(state_dir, enabled=encrypt)
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

    @property
    def path(self) -> Path:
        return self._db_path

    def open(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            try:
                conn = sqlite3.connect(
                    str(self._db_path), timeout=10, check_same_thread=False
                )
                conn.execute("PRAGMA journal_mode=WAL")
                conn.row_factory = sqlite3.Row
                conn.executescript(_SCHEMA_SQL)
                conn.executemany(
                    "INSERT OR IGNORE INTO statistics (name, value) VALUES (?, 0)",
                    [(name,) for name in _COUNTERS],
                )
                conn.commit()
            except sqlite3.Error as e:
                raise LedgerError(f"Cannot open audit ledger at {self._db_path}: {e}") from e
            self._conn = conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def append(self, entry: AuditEntry) -> AuditEntry:
        payload, encrypted = self._cipher.seal(json.dumps(entry.data, default=str))
        deltas = counter_deltas(entry)
        with self._lock:
            conn = self._require_conn()
            try:
                with conn:
                    conn.execute(
                        """INSERT INTO entries
                           (id, type, timestamp, session_id, status, payload, encrypted)
                           VALUES (?, ?, ?, ?, ?, ?, ?)""",
                        (
                            entry.id,
                            entry.type.value,
                            entry.timestamp.isoformat(),
                            entry.session_id,
                            entry.status,
                            payload,
                            int(encrypted),
                        ),
                    )
                    for name, delta in deltas.items():
                        conn.execute(
                            "UPDATE statistics SET value = value + ? WHERE name = ?",
                            (delta, name),
                        )
            except sqlite3.Error as e:
                raise LedgerError(f"Could not append {entry.type.value} entry: {e}") from e
        logger.debug("Ledger append %s %s", entry.type.value, entry.id)
        return entry

    def query(self, entry_filter: EntryFilter | None = None) -> list[AuditEntry]:
        f = entry_filter or EntryFilter()
        clauses: list[str] = []
        params: list[Any] = []
        if f.types:
            clauses.append(f"type IN ({', '.join('?' for _ in f.types)})")
            params.extend(t.value for t in f.types)
        if f.session_id is not None:
            clauses.append("session_id = ?")
            params.append(f.session_id)
        if f.since is not None:
            clauses.append("timestamp >= ?")
            params.append(f.since.astimezone(timezone.utc).isoformat())

        sql = "SELECT * FROM entries"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY seq DESC" if f.newest_first else " ORDER BY seq ASC"
        if f.limit is not None:
            sql += " LIMIT ?"
            params.append(f.limit)

        with self._lock:
            conn = self._require_conn()
            try:
                rows = conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise LedgerError(f"Audit query failed: {e}") from e
        return [self._row_to_entry(row) for row in rows]

    def statistics(self) -> Statistics:
        with self._lock:
            conn = self._require_conn()
            try:
                rows = conn.execute("SELECT name, value FROM statistics").fetchall()
            except sqlite3.Error as e:
                raise LedgerError(f"Could not read statistics: {e}") from e
        values = {row["name"]: row["value"] for row in rows if row["name"] in _COUNTERS}
        return Statistics(**values)

    def clear(self) -> None:
        with self._lock:
            conn = self._require_conn()
            try:
                with conn:
                    conn.execute("DELETE FROM entries")
                    conn.execute("UPDATE statistics SET value = 0")
            except sqlite3.Error as e:
                raise LedgerError(f"Could not clear audit ledger: {e}") from e
        logger.info("Audit ledger cleared")

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise LedgerError("Audit ledger is not open")
        return self._conn

    def _row_to_entry(self, row: sqlite3.Row) -> AuditEntry:
        data = json.loads(self._cipher.open(row["payload"], bool(row["encrypted"])))
        return AuditEntry(
            id=row["id"],
            type=EntryType(row["type"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            session_id=row["session_id"],
            status=row["status"],
            data=data,
        )


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class MemoryAuditLedger(AuditLedger):
    """Process-local ledger used by tests and embedding callers."""

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []
        self._stats = Statistics()
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> AuditEntry:
        deltas = counter_deltas(entry)
        with self._lock:
            self._entries.append(entry)
            if deltas:
                self._stats = replace(
                    self._stats,
                    **{k: getattr(self._stats, k) + v for k, v in deltas.items()},
                )
        return entry

    def query(self, entry_filter: EntryFilter | None = None) -> list[AuditEntry]:
        f = entry_filter or EntryFilter()
        with self._lock:
            matched = [e for e in self._entries if f.matches(e)]
        if f.newest_first:
            matched.reverse()
        if f.limit is not None:
            matched = matched[: f.limit]
        return matched

    def statistics(self) -> Statistics:
        with self._lock:
            return self._stats

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._stats = Statistics()
