"""Tests for the audit ledger backends."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pcmedic.audit.entries import AuditEntry, EntryFilter, EntryType, Statistics
from pcmedic.audit.ledger import MemoryAuditLedger, SqliteAuditLedger
from pcmedic.core.errors import LedgerError


@pytest.fixture(params=["sqlite", "memory"])
def any_ledger(request, state_dir):
    if request.param == "memory":
        yield MemoryAuditLedger()
        return
    with SqliteAuditLedger(state_dir) as ledger:
        yield ledger


def _entry(entry_type: EntryType, session_id: str = "s1", **data) -> AuditEntry:
    return AuditEntry(type=entry_type, data=data, session_id=session_id)


class TestStatistics:
    def test_counters_follow_entry_types(self, any_ledger):
        any_ledger.append(_entry(EntryType.DIAGNOSTIC_START))
        any_ledger.append(_entry(EntryType.DIAGNOSTIC_COMPLETE, fix_count=3))
        any_ledger.append(_entry(EntryType.DIAGNOSTIC_COMPLETE, fix_count=2))
        any_ledger.append(_entry(EntryType.SAFETY_CHECK, passed=False))
        any_ledger.append(_entry(EntryType.FIX_START))
        any_ledger.append(_entry(EntryType.FIX_SUCCESS))
        any_ledger.append(_entry(EntryType.FIX_FAILURE))
        any_ledger.append(_entry(EntryType.FIX_FAILURE))

        assert any_ledger.statistics() == Statistics(
            total_diagnostics=2,
            total_fixes_recommended=5,
            total_fixes_executed=3,
            total_fixes_successful=1,
            total_fixes_failed=2,
        )

    def test_executed_is_always_successful_plus_failed(self, any_ledger):
        for entry_type in [EntryType.FIX_SUCCESS, EntryType.FIX_FAILURE] * 4 + [EntryType.ROLLBACK]:
            any_ledger.append(_entry(entry_type))
            stats = any_ledger.statistics()
            assert stats.total_fixes_executed == (
                stats.total_fixes_successful + stats.total_fixes_failed
            )

    def test_clear_resets_entries_and_counters(self, any_ledger):
        any_ledger.append(_entry(EntryType.DIAGNOSTIC_COMPLETE, fix_count=1))
        any_ledger.clear()
        assert any_ledger.query() == []
        assert any_ledger.statistics() == Statistics()


class TestQuery:
    def test_append_order_and_round_trip(self, any_ledger):
        first = any_ledger.append(_entry(EntryType.DIAGNOSTIC_START, problem_type="slow"))
        any_ledger.append(_entry(EntryType.DIAGNOSTIC_COMPLETE, fix_count=0))

        entries = any_ledger.query()
        assert [e.type for e in entries] == [EntryType.DIAGNOSTIC_START, EntryType.DIAGNOSTIC_COMPLETE]
        assert entries[0].id == first.id
        assert entries[0].data == {"problem_type": "slow"}
        assert entries[0].timestamp == first.timestamp

    def test_filters(self, any_ledger):
        any_ledger.append(_entry(EntryType.DIAGNOSTIC_START, "a"))
        any_ledger.append(_entry(EntryType.FIX_START, "b"))
        any_ledger.append(_entry(EntryType.FIX_SUCCESS, "b"))

        assert [e.type for e in any_ledger.session_entries("b")] == [
            EntryType.FIX_START, EntryType.FIX_SUCCESS,
        ]
        only_fix = any_ledger.query(EntryFilter(types=(EntryType.FIX_SUCCESS,)))
        assert len(only_fix) == 1
        newest = any_ledger.query(EntryFilter(limit=2, newest_first=True))
        assert [e.type for e in newest] == [EntryType.FIX_SUCCESS, EntryType.FIX_START]
        assert [e.type for e in any_ledger.recent(1)] == [EntryType.FIX_SUCCESS]

    def test_since(self, any_ledger):
        old = AuditEntry(
            type=EntryType.DIAGNOSTIC_START,
            timestamp=datetime.now(timezone.utc) - timedelta(days=3),
        )
        any_ledger.append(old)
        any_ledger.append(_entry(EntryType.DIAGNOSTIC_START))
        since = datetime.now(timezone.utc) - timedelta(days=1)
        assert len(any_ledger.query(EntryFilter(since=since))) == 1

    def test_export_shape(self, any_ledger):
        any_ledger.append(_entry(EntryType.DIAGNOSTIC_COMPLETE, fix_count=1))
        exported = any_ledger.export()
        assert exported["version"] == 1
        assert "exportDate" in exported
        assert exported["statistics"]["totalDiagnostics"] == 1
        assert exported["logs"][0]["type"] == "DIAGNOSTIC_COMPLETE"
        assert exported["logs"][0]["sessionId"] == "s1"


class TestSqliteAuditLedger:
    def test_persists_across_connections(self, state_dir):
        with SqliteAuditLedger(state_dir) as ledger:
            ledger.append(_entry(EntryType.FIX_SUCCESS))
        with SqliteAuditLedger(state_dir) as ledger:
            assert len(ledger.query()) == 1
            assert ledger.statistics().total_fixes_successful == 1
        assert (state_dir / "audit.db").exists()

    def test_closed_ledger_raises(self, state_dir):
        ledger = SqliteAuditLedger(state_dir)
        with pytest.raises(LedgerError, match="not open"):
            ledger.append(_entry(EntryType.FIX_START))

    def test_open_is_idempotent(self, state_dir):
        ledger = SqliteAuditLedger(state_dir)
        ledger.open()
        ledger.open()
        ledger.append(_entry(EntryType.FIX_START))
        ledger.close()
        ledger.close()

    def test_encrypted_payloads(self, state_dir):
        with SqliteAuditLedger(state_dir, encrypt=True) as ledger:
            ledger.append(_entry(EntryType.FIX_PROGRESS, output="secret-output"))
            assert ledger.query()[0].data["output"] == "secret-output"

        raw = (state_dir / "audit.db").read_bytes()
        assert b"secret-output" not in raw
        assert (state_dir / "ledger.key").exists()

    def test_plain_rows_stay_readable_after_enabling_encryption(self, state_dir):
        with SqliteAuditLedger(state_dir) as ledger:
            ledger.append(_entry(EntryType.FIX_START, title="plain"))
        with SqliteAuditLedger(state_dir, encrypt=True) as ledger:
            ledger.append(_entry(EntryType.FIX_START, title="sealed"))
            assert [e.data["title"] for e in ledger.query()] == ["plain", "sealed"]

    def test_wrong_key(self, state_dir):
        with SqliteAuditLedger(state_dir, encrypt=True) as ledger:
            ledger.append(_entry(EntryType.FIX_START))
        (state_dir / "ledger.key").unlink()
        with SqliteAuditLedger(state_dir, encrypt=True) as ledger:
            with pytest.raises(LedgerError, match="decrypted"):
                ledger.query()
