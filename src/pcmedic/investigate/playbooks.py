"""Built-in playbook catalog, keyed by problem type."""

from __future__ import annotations

from pcmedic.core.errors import UnknownProblemType
from pcmedic.core.models import Playbook, Step

CRASH = Playbook(
    key="crash",
    name="Crash Investigation",
    description="Investigates why programs or games are crashing",
    steps=(
        Step("event_logs", "Check system logs for crash entries", {
            "log_names": ["Application", "System"],
            "levels": ["Error"],
            "time_range_days": 7,
            "find_patterns": True,
        }),
        Step("crash_dumps", "Locate recent crash dump files", {"max_age_days": 30}),
        Step("disk_health", "Check disk health with SMART data", {"check_smart": True}),
        Step("drivers", "Verify driver versions and status", {
            "focus": ["gpu", "audio", "network", "chipset"],
        }),
        Step("system_resources", "Verify the system has sufficient resources", {
            "check_temperature": True,
        }),
        Step("recent_changes", "Check for recent updates and software changes", {
            "days": 7,
            "include": ["software", "windows-updates"],
        }),
    ),
)

SLOW = Playbook(
    key="slow",
    name="Slow Performance Investigation",
    description="Investigates why the computer is running slowly",
    steps=(
        Step("startup_programs", "Review programs that run at startup"),
        Step("disk_health", "Check available disk space", {
            "warning_percent": 10,
            "critical_percent": 5,
            "check_smart": False,
        }),
        Step("system_resources", "Analyze memory usage", {
            "top_processes": 10,
            "sort_by": "memory",
        }),
        Step("disk_health", "Check disk health with SMART data", {"check_smart": True}),
        Step("background_processes", "Find resource-hungry background processes", {"top": 20}),
        Step("temp_files", "Find and measure temporary files"),
    ),
)

ERROR = Playbook(
    key="error",
    name="Error Message Investigation",
    description="Investigates recurring error messages",
    steps=(
        Step("event_logs", "Search system logs for error patterns", {
            "log_names": ["Application", "System"],
            "levels": ["Error", "Warning"],
            "time_range_days": 7,
            "find_patterns": True,
        }),
        Step("disk_health", "Check disk health with SMART data", {"check_smart": True}),
        Step("system_files", "Check system file integrity"),
        Step("drivers", "Look for driver errors", {
            "focus": "all",
            "check_problem_devices": True,
        }),
        Step("recent_changes", "Check for recent system changes", {"days": 14}),
    ),
)

HARDWARE = Playbook(
    key="hardware",
    name="Hardware Problem Investigation",
    description="Investigates hardware-related issues",
    steps=(
        Step("device_manager", "Check for device errors and unknown devices"),
        Step("drivers", "Check hardware drivers", {
            "focus": "all",
            "check_problem_devices": True,
        }),
        Step("system_resources", "Monitor hardware sensors", {"check_temperature": True}),
        Step("usb_devices", "Check connected USB devices"),
    ),
)

NETWORK = Playbook(
    key="network",
    name="Network Problem Investigation",
    description="Investigates internet and network connectivity issues",
    steps=(
        Step("network", "Test connectivity and DNS", {
            "ping_targets": ["8.8.8.8", "1.1.1.1"],
            "check_dns": True,
        }),
    ),
)

FULL_SCAN = Playbook(
    key="full-scan",
    name="Complete System Scan",
    description="Comprehensive diagnostic of the entire system",
    steps=CRASH.steps + SLOW.steps + HARDWARE.steps + NETWORK.steps,
)

PLAYBOOKS: dict[str, Playbook] = {
    p.key: p for p in (CRASH, SLOW, ERROR, HARDWARE, NETWORK, FULL_SCAN)
}


def get_playbook(problem_type: str) -> Playbook:
    """Return the playbook for *problem_type*.

    Raises:
        UnknownProblemType: If no playbook exists for that type.
    """
    try:
        return PLAYBOOKS[problem_type]
    except KeyError:
        raise UnknownProblemType(problem_type, sorted(PLAYBOOKS)) from None
