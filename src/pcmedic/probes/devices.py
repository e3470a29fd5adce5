"""Device probes: Plug and Play device status and attached USB devices."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.core.platform import LINUX, MACOS, WINDOWS
from pcmedic.probes.base import BaseProbe, parse_json_records

logger = logging.getLogger(__name__)

DISABLED_NOTICE = 5
USB_NOTICE = 15

_LSUSB_RE = re.compile(r"^Bus (\d+) Device (\d+): ID ([0-9a-fA-F]{4}):([0-9a-fA-F]{4})\s*(.*)$")


class DeviceManagerProbe(BaseProbe):
    """Sorts Plug and Play devices into error, disabled and unknown.

    Windows only; elsewhere the drivers probe covers unbound devices.
    """

    probe_kind = "device_manager"
    description = "Check for device errors and unknown devices"

    def collect(self, config: dict[str, Any]) -> Finding:
        raw: dict[str, Any] = {
            "platform": self.platform_name,
            "error_devices": [],
            "disabled_devices": [],
            "unknown_devices": [],
        }
        if self.platform_name != WINDOWS:
            return self._make_finding(raw=raw)

        result = self._run(
            'powershell -Command "Get-PnpDevice | Select-Object FriendlyName, Status, Class, '
            'InstanceId, ProblemDescription | ConvertTo-Json"'
        )
        if not result.ok:
            return self._make_finding(
                raw=raw, errors=[f"device query failed: {result.failure_reason}"]
            )
        try:
            rows = parse_json_records(result.stdout)
        except ValueError as e:
            logger.warning("Unreadable device list: %s", e)
            return self._make_finding(raw=raw, errors=[f"device list unreadable: {e}"])

        for row in rows:
            name = row.get("FriendlyName")
            if not name or name == "None":
                continue  # software devices
            device = {"name": name, "class": row.get("Class"), "instance_id": row.get("InstanceId")}
            status = row.get("Status")
            if status == "Error":
                raw["error_devices"].append(
                    {**device, "problem": row.get("ProblemDescription") or "Unknown error"}
                )
            elif status == "Disabled":
                raw["disabled_devices"].append(device)
            if status == "Unknown" or "Unknown" in name:
                raw["unknown_devices"].append(device)

        warnings = []
        recommendations = []
        if raw["error_devices"]:
            names = ", ".join(d["name"] for d in raw["error_devices"])
            warnings.append(self._warning(f"{len(raw['error_devices'])} devices have errors: {names}"))
            recommendations.append(Recommendation(
                kind="device-drivers",
                message="Update or reinstall drivers for devices with errors.",
                severity=Severity.WARNING,
            ))
        if raw["unknown_devices"]:
            warnings.append(self._warning(
                f"{len(raw['unknown_devices'])} unknown devices found", severity=Severity.INFO
            ))
            recommendations.append(Recommendation(
                kind="missing-drivers",
                message="Install drivers for unknown devices.",
            ))
        if len(raw["disabled_devices"]) > DISABLED_NOTICE:
            warnings.append(self._warning(
                f"{len(raw['disabled_devices'])} devices are disabled", severity=Severity.INFO
            ))
        return self._make_finding(warnings, recommendations, raw)


class UsbDeviceProbe(BaseProbe):
    """Lists attached USB devices and hubs."""

    probe_kind = "usb_devices"
    description = "Check connected USB devices"

    def collect(self, config: dict[str, Any]) -> Finding:
        errors: list[str] = []
        if self.platform_name == WINDOWS:
            devices = self._windows_devices(errors)
        elif self.platform_name == MACOS:
            devices = self._macos_devices(errors)
        elif self.platform_name == LINUX:
            devices = self._linux_devices(errors)
        else:
            devices = []

        hubs = [d for d in devices if d["hub"]]
        connected = [d for d in devices if not d["hub"]]
        failing = [d for d in devices if d["status"] == "Error"]

        warnings = []
        recommendations = []
        if failing:
            names = ", ".join(d["name"] for d in failing)
            warnings.append(self._warning(f"{len(failing)} USB devices have errors: {names}"))
            recommendations.append(Recommendation(
                kind="usb-troubleshoot",
                message="Reconnect USB devices with errors or update USB drivers.",
                severity=Severity.WARNING,
            ))
        if len(connected) > USB_NOTICE:
            warnings.append(self._warning(
                f"{len(connected)} USB devices connected", severity=Severity.INFO
            ))
            recommendations.append(Recommendation(
                kind="usb-power",
                message="Many USB devices are connected; make sure they have adequate power.",
            ))

        raw = {
            "platform": self.platform_name,
            "devices": connected,
            "hubs": hubs,
            "error_devices": failing,
            "total_count": len(devices),
        }
        return self._make_finding(warnings, recommendations, raw, errors)

    def _windows_devices(self, errors: list[str]) -> list[dict[str, Any]]:
        result = self._run(
            'powershell -Command "Get-PnpDevice -Class USB | '
            'Select-Object FriendlyName, Status, InstanceId | ConvertTo-Json"'
        )
        if not result.ok:
            errors.append(f"USB device query failed: {result.failure_reason}")
            return []
        try:
            rows = parse_json_records(result.stdout)
        except ValueError as e:
            logger.warning("Unreadable USB device list: %s", e)
            errors.append(f"USB device list unreadable: {e}")
            return []
        devices = []
        for row in rows:
            name = row.get("FriendlyName")
            if not name or name == "None":
                continue
            devices.append({
                "name": name,
                "status": row.get("Status"),
                "hub": "Hub" in name,
                "instance_id": row.get("InstanceId"),
            })
        return devices

    def _macos_devices(self, errors: list[str]) -> list[dict[str, Any]]:
        result = self._run("system_profiler SPUSBDataType -json")
        if not result.ok:
            errors.append(f"system_profiler failed: {result.failure_reason}")
            return []
        try:
            data = json.loads(result.stdout or "{}")
        except ValueError as e:
            logger.warning("Unreadable system_profiler output: %s", e)
            errors.append(f"system_profiler output unreadable: {e}")
            return []
        if not isinstance(data, dict):
            data = {}
        devices: list[dict[str, Any]] = []
        _walk_usb_tree(data.get("SPUSBDataType") or [], devices)
        return devices

    def _linux_devices(self, errors: list[str]) -> list[dict[str, Any]]:
        result = self._run("lsusb")
        if not result.ok:
            if result.exit_code != 127:
                errors.append(f"lsusb failed: {result.failure_reason}")
            return []
        return parse_lsusb(result.stdout)


def _walk_usb_tree(items: list[dict[str, Any]], out: list[dict[str, Any]]) -> None:
    """Flatten system_profiler's nested ``_items`` (devices behind hubs)."""
    for item in items:
        name = item.get("_name")
        if name:
            out.append({
                "name": name,
                "status": "OK",
                "hub": "hub" in name.lower() or item.get("bcd_device") == "0.00",
                "manufacturer": item.get("manufacturer") or "Unknown",
                "vendor_id": item.get("vendor_id") or "Unknown",
                "product_id": item.get("product_id") or "Unknown",
            })
        _walk_usb_tree(item.get("_items") or [], out)


def parse_lsusb(output: str) -> list[dict[str, Any]]:
    devices = []
    for line in output.splitlines():
        match = _LSUSB_RE.match(line.strip())
        if not match:
            continue
        bus, number, vendor, product, name = match.groups()
        name = name.strip() or f"{vendor}:{product}"
        devices.append({
            "name": name,
            "status": "OK",
            # Device 001 on each bus is its root hub.
            "hub": number == "001" or "hub" in name.lower(),
            "vendor_id": vendor,
            "product_id": product,
            "bus": int(bus),
        })
    return devices
