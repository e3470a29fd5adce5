"""Tests for the driver probe."""

from __future__ import annotations

import json

from conftest import FakeRunner

from pcmedic.core.models import Severity
from pcmedic.core.platform import LINUX, MACOS, WINDOWS
from pcmedic.probes.drivers import DriverProbe, _devices_without_driver, _focus_classes

LSPCI = """\
00:02.0 VGA compatible controller: Intel Corporation UHD Graphics 620
\tSubsystem: Lenovo Device 2258
\tKernel driver in use: i915
\tKernel modules: i915
00:1f.3 Audio device: Intel Corporation Sunrise Point-LP HD Audio
\tSubsystem: Lenovo Device 2258
3b:00.0 Unassigned class [ff00]: Realtek Semiconductor Card Reader
"""


class TestLspciParsing:
    def test_devices_without_driver(self):
        missing = _devices_without_driver(LSPCI)
        assert missing == [
            "Audio device: Intel Corporation Sunrise Point-LP HD Audio",
            "Unassigned class [ff00]: Realtek Semiconductor Card Reader",
        ]

    def test_empty_output(self):
        assert _devices_without_driver("") == []


class TestFocus:
    def test_all_means_no_filter(self):
        assert _focus_classes("all") is None

    def test_shorthands_expand_to_device_classes(self):
        assert _focus_classes(["gpu", "network"]) == {"DISPLAY", "NET"}

    def test_unknown_shorthand_is_used_verbatim(self):
        assert _focus_classes(["bluetooth"]) == {"BLUETOOTH"}


class TestDriverProbe:
    def test_linux(self):
        runner = FakeRunner()
        runner.script("uname -r", stdout="6.8.0-45-generic\n")
        runner.script("lspci -k", stdout=LSPCI)
        finding = DriverProbe(runner=runner, platform_name=LINUX).collect({})

        assert finding.raw["kernel"] == "6.8.0-45-generic"
        assert len(finding.raw["devices_without_driver"]) == 2
        assert all(w.severity is Severity.INFO for w in finding.warnings)

    def test_linux_without_lspci(self):
        runner = FakeRunner()
        runner.script("lspci", stderr="lspci: command not found", exit_code=127)
        finding = DriverProbe(runner=runner, platform_name=LINUX).collect({})

        assert finding.error is None
        assert finding.raw["devices_without_driver"] == []

    def test_macos_reports_os_version(self):
        runner = FakeRunner()
        runner.script("sw_vers", stdout="14.5\n")
        finding = DriverProbe(runner=runner, platform_name=MACOS).collect({})
        assert finding.raw["os_version"] == "14.5"

    def test_windows_stale_and_problem_devices(self):
        drivers = [
            {"DeviceName": "NVIDIA GeForce", "DeviceClass": "DISPLAY",
             "DriverVersion": "27.21", "DriverDate": "20190101000000.000000-000",
             "Manufacturer": "NVIDIA"},
            {"DeviceName": "USB Root Hub", "DeviceClass": "USB",
             "DriverVersion": "10.0", "DriverDate": "20060621000000.000000-000",
             "Manufacturer": "Microsoft"},
        ]
        problems = {"Name": "Unknown device", "PNPClass": None,
                    "ConfigManagerErrorCode": 28, "Status": "Error"}
        runner = FakeRunner()
        runner.script("Win32_PnPSignedDriver", stdout=json.dumps(drivers))
        runner.script("Win32_PnPEntity", stdout=json.dumps(problems))

        finding = DriverProbe(runner=runner, platform_name=WINDOWS).collect({"focus": ["gpu"]})

        assert [d["device"] for d in finding.raw["drivers"]] == ["NVIDIA GeForce"]
        assert finding.raw["drivers"][0]["date"] == "2019-01-01"
        assert finding.raw["problem_devices"][0]["error_code"] == 28
        messages = [w.message for w in finding.warnings]
        assert any("NVIDIA GeForce driver is" in m for m in messages)
        assert any("error code 28" in m for m in messages)
        assert finding.recommendations[0].kind == "reinstall-driver"

    def test_windows_inventory_failure(self):
        runner = FakeRunner()
        runner.script("Win32_PnPSignedDriver", stderr="RPC unavailable", exit_code=1)
        finding = DriverProbe(runner=runner, platform_name=WINDOWS).collect(
            {"check_problem_devices": False}
        )
        assert "driver inventory failed" in finding.error
        assert len(runner.calls) == 1

    def test_windows_unreadable_inventory_keeps_problem_devices(self):
        problems = {"Name": "Unknown device", "PNPClass": None,
                    "ConfigManagerErrorCode": 28, "Status": "Error"}
        runner = FakeRunner()
        runner.script("Win32_PnPSignedDriver", stdout="not json{")
        runner.script("Win32_PnPEntity", stdout=json.dumps(problems))

        finding = DriverProbe(runner=runner, platform_name=WINDOWS).collect({})

        assert "driver inventory unreadable" in finding.error
        assert finding.raw["drivers"] == []
        assert finding.raw["problem_devices"][0]["error_code"] == 28

    def test_windows_unreadable_device_status_keeps_inventory(self):
        drivers = {"DeviceName": "Realtek Audio", "DeviceClass": "MEDIA",
                   "DriverVersion": "6.0", "DriverDate": None, "Manufacturer": "Realtek"}
        runner = FakeRunner()
        runner.script("Win32_PnPSignedDriver", stdout=json.dumps(drivers))
        runner.script("Win32_PnPEntity", stdout="<garbled>")

        finding = DriverProbe(runner=runner, platform_name=WINDOWS).collect({})

        assert "device status unreadable" in finding.error
        assert [d["device"] for d in finding.raw["drivers"]] == ["Realtek Audio"]
