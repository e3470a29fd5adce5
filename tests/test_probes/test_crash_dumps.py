"""Tests for crash-dump discovery."""

from __future__ import annotations

import os
import time
from pathlib import Path

import pytest
from conftest import FakeRunner

from pcmedic.core.models import Severity
from pcmedic.core.platform import LINUX
from pcmedic.probes.crash_dumps import CrashDumpProbe, app_name, expand_location


def _dump(directory: Path, name: str, age_days: float = 0) -> Path:
    path = directory / name
    path.write_bytes(b"\0" * 2048)
    if age_days:
        stamp = time.time() - age_days * 86400
        os.utime(path, (stamp, stamp))
    return path


class TestAppName:
    @pytest.mark.parametrize("filename,expected", [
        ("Safari_2024-01-02-101112_host.crash", "Safari"),
        ("game.exe.1234.dmp", "game.exe"),
        ("Mini010224-01.dmp", "Mini010224"),
        ("kernel.panic", "kernel"),
    ])
    def test_app_name(self, filename, expected):
        assert app_name(filename) == expected


class TestExpandLocation:
    def test_existing_directory(self, tmp_path):
        assert expand_location(str(tmp_path)) == [tmp_path]

    def test_missing_directory(self, tmp_path):
        assert expand_location(str(tmp_path / "nope")) == []

    def test_percent_variables(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PCMEDIC_TEST_DIR", str(tmp_path))
        assert expand_location("%PCMEDIC_TEST_DIR%") == [tmp_path]

    def test_unresolved_variable(self):
        assert expand_location("%PCMEDIC_SURELY_UNSET_VAR%/x") == []

    def test_wildcards(self, tmp_path):
        (tmp_path / "a" / "Crashes").mkdir(parents=True)
        (tmp_path / "b" / "Crashes").mkdir(parents=True)
        (tmp_path / "c").mkdir()
        found = expand_location(str(tmp_path / "*" / "Crashes"))
        assert found == [tmp_path / "a" / "Crashes", tmp_path / "b" / "Crashes"]


class TestCrashDumpProbe:
    def test_no_dumps(self, tmp_path):
        probe = CrashDumpProbe(runner=FakeRunner(), platform_name=LINUX)
        finding = probe.collect({"locations": [str(tmp_path)]})
        assert finding.warnings == ()
        assert finding.raw["dump_count"] == 0
        assert finding.raw["locations_searched"] == [str(tmp_path)]

    def test_repeat_crasher_is_critical(self, tmp_path):
        for i in range(3):
            _dump(tmp_path, f"game.exe.{1000 + i}.dmp")
        _dump(tmp_path, "editor.exe.55.dmp")
        _dump(tmp_path, "notes.txt")

        probe = CrashDumpProbe(runner=FakeRunner(), platform_name=LINUX)
        finding = probe.collect({"locations": [str(tmp_path)]})

        assert finding.raw["dump_count"] == 4
        assert finding.raw["by_app"] == {"game.exe": 3, "editor.exe": 1}
        assert finding.warnings[0].severity is Severity.WARNING
        assert finding.warnings[1].severity is Severity.CRITICAL
        assert "game.exe crashed 3 times" in finding.warnings[1].message
        assert [r.kind for r in finding.recommendations] == ["repair-crashing-app"]

    def test_old_dumps_are_ignored(self, tmp_path):
        _dump(tmp_path, "old.dmp", age_days=45)
        _dump(tmp_path, "new.dmp")
        probe = CrashDumpProbe(runner=FakeRunner(), platform_name=LINUX)
        finding = probe.collect({"locations": [str(tmp_path)], "max_age_days": 30})
        assert [Path(d["path"]).name for d in finding.raw["dumps"]] == ["new.dmp"]

    def test_core_files_are_counted(self, tmp_path):
        _dump(tmp_path, "core.1234")
        probe = CrashDumpProbe(runner=FakeRunner(), platform_name=LINUX)
        finding = probe.collect({"locations": [str(tmp_path)]})
        assert finding.raw["dump_count"] == 1
