"""Tests for the startup-program probe."""

from __future__ import annotations

import json

from conftest import FakeRunner

from pcmedic.core.platform import LINUX, MACOS, WINDOWS
from pcmedic.probes.startup import StartupProgramProbe


def _autostart(tmp_path, names, suffix=".desktop"):
    directory = tmp_path / "autostart"
    directory.mkdir()
    for name in names:
        (directory / f"{name}{suffix}").write_text("[Desktop Entry]\n")
    (directory / "notes.txt").write_text("ignored")
    return [[str(directory), "Current User", suffix]]


class TestStartupProgramProbe:
    def test_windows_startup_commands(self):
        runner = FakeRunner()
        runner.script("Win32_StartupCommand", stdout=json.dumps([
            {"Name": "OneDrive", "Command": "onedrive.exe /background",
             "Location": "HKU\\...\\Run", "User": "PC\\alex"},
            {"Name": "Steam", "Command": "steam.exe -silent", "Location": "Startup", "User": None},
        ]))
        finding = StartupProgramProbe(runner=runner, platform_name=WINDOWS).collect({})

        assert finding.error is None
        assert finding.raw["total_count"] == 2
        assert finding.raw["programs"][1]["user"] == "All Users"
        assert finding.raw["high_impact"] == ["Steam"]
        assert [r.kind for r in finding.recommendations] == ["startup-optimization"]
        assert finding.warnings == ()

    def test_windows_single_entry_is_an_object(self):
        runner = FakeRunner()
        runner.script("Win32_StartupCommand", stdout=json.dumps(
            {"Name": "Dropbox", "Command": "dropbox.exe", "Location": "Startup", "User": "Public"}
        ))
        finding = StartupProgramProbe(runner=runner, platform_name=WINDOWS).collect({})
        assert [p["name"] for p in finding.raw["programs"]] == ["Dropbox"]

    def test_windows_unreadable_output_is_reported(self):
        runner = FakeRunner()
        runner.script("Win32_StartupCommand", stdout="not json{")
        finding = StartupProgramProbe(runner=runner, platform_name=WINDOWS).collect({})
        assert "unreadable" in finding.error
        assert finding.raw["programs"] == []

    def test_windows_failed_query_is_reported(self):
        runner = FakeRunner()
        runner.script("Win32_StartupCommand", stderr="Access denied", exit_code=1)
        finding = StartupProgramProbe(runner=runner, platform_name=WINDOWS).collect({})
        assert "startup command query failed" in finding.error

    def test_linux_autostart_entries(self, tmp_path):
        directories = _autostart(tmp_path, ["nextcloud", "discord"])
        probe = StartupProgramProbe(runner=FakeRunner(), platform_name=LINUX)
        finding = probe.collect({"directories": directories})

        assert sorted(p["name"] for p in finding.raw["programs"]) == ["discord", "nextcloud"]
        assert finding.raw["high_impact"] == ["discord"]

    def test_too_many_programs_warns(self, tmp_path):
        directories = _autostart(tmp_path, [f"app{i}" for i in range(21)])
        probe = StartupProgramProbe(runner=FakeRunner(), platform_name=LINUX)
        finding = probe.collect({"directories": directories})

        assert "21 programs" in finding.warnings[0].message
        assert finding.recommendations[0].kind == "startup"

    def test_macos_adds_login_items(self, tmp_path):
        directories = _autostart(tmp_path, ["com.example.agent"], suffix=".plist")
        runner = FakeRunner()
        runner.script("login item", stdout="Spotify, Rectangle\n")
        finding = StartupProgramProbe(runner=runner, platform_name=MACOS).collect(
            {"directories": directories}
        )

        names = [p["name"] for p in finding.raw["programs"]]
        assert names == ["com.example.agent", "Spotify", "Rectangle"]
        assert finding.raw["programs"][0]["command"] == "LaunchAgent"

    def test_macos_login_items_unavailable(self, tmp_path):
        runner = FakeRunner()
        runner.script("login item", stderr="not authorized", exit_code=1)
        probe = StartupProgramProbe(runner=runner, platform_name=MACOS)
        finding = probe.collect({"directories": [[str(tmp_path / "missing"), "All Users", ".plist"]]})
        assert finding.raw["programs"] == []
        assert finding.error is None
