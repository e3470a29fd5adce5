"""Probes: read-only investigation units, one per ``probe_kind``."""

from pcmedic.probes.base import BaseProbe
from pcmedic.probes.crash_dumps import CrashDumpProbe
from pcmedic.probes.devices import DeviceManagerProbe, UsbDeviceProbe
from pcmedic.probes.disk import DiskProbe
from pcmedic.probes.drivers import DriverProbe
from pcmedic.probes.event_log import EventLogProbe
from pcmedic.probes.network import NetworkProbe
from pcmedic.probes.processes import BackgroundProcessProbe
from pcmedic.probes.recent_changes import RecentChangeProbe
from pcmedic.probes.resources import ResourceProbe
from pcmedic.probes.startup import StartupProgramProbe
from pcmedic.probes.system_files import SystemFileProbe
from pcmedic.probes.temp_files import TempFileProbe

ALL_PROBES: dict[str, type[BaseProbe]] = {
    # System state
    EventLogProbe.probe_kind: EventLogProbe,
    DiskProbe.probe_kind: DiskProbe,
    DriverProbe.probe_kind: DriverProbe,
    ResourceProbe.probe_kind: ResourceProbe,
    NetworkProbe.probe_kind: NetworkProbe,
    BackgroundProcessProbe.probe_kind: BackgroundProcessProbe,
    StartupProgramProbe.probe_kind: StartupProgramProbe,
    RecentChangeProbe.probe_kind: RecentChangeProbe,
    SystemFileProbe.probe_kind: SystemFileProbe,
    # Devices
    DeviceManagerProbe.probe_kind: DeviceManagerProbe,
    UsbDeviceProbe.probe_kind: UsbDeviceProbe,
    # Filesystem scans
    CrashDumpProbe.probe_kind: CrashDumpProbe,
    TempFileProbe.probe_kind: TempFileProbe,
}

__all__ = [
    "ALL_PROBES",
    "BackgroundProcessProbe",
    "BaseProbe",
    "CrashDumpProbe",
    "DeviceManagerProbe",
    "DiskProbe",
    "DriverProbe",
    "EventLogProbe",
    "NetworkProbe",
    "RecentChangeProbe",
    "ResourceProbe",
    "StartupProgramProbe",
    "SystemFileProbe",
    "TempFileProbe",
    "UsbDeviceProbe",
]
