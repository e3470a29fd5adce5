"""Resource-utilization probe: CPU, memory, swap, top processes, temperature."""

from __future__ import annotations

import logging
from typing import Any

import psutil

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.probes.base import BaseProbe

logger = logging.getLogger(__name__)

_MB = 1024 ** 2
_GB = 1024 ** 3

CPU_WARNING = 80.0
CPU_CRITICAL = 90.0
RAM_WARNING = 80.0
RAM_CRITICAL = 90.0
TEMP_WARNING = 75.0
TEMP_CRITICAL = 85.0


class ResourceProbe(BaseProbe):
    """Samples current resource usage with psutil.

    Step config:
        sample_seconds:     CPU sampling interval (1.0).
        top_processes:      Number of processes to report (5).
        sort_by:            "memory" or "cpu" (memory).
        check_temperature:  Read hardware sensors when available (False).
    """

    probe_kind = "system_resources"
    description = "Measure CPU, memory and process load"

    def collect(self, config: dict[str, Any]) -> Finding:
        warnings = []
        recommendations = []

        # Per-process CPU needs two readings; the system sample is the gap between them.
        procs = prime_cpu_counters()
        cpu_pct = psutil.cpu_percent(interval=float(config.get("sample_seconds", 1.0)))
        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()

        if cpu_pct > CPU_CRITICAL:
            warnings.append(self._warning(
                f"CPU usage is critically high ({cpu_pct:.0f}%)", severity=Severity.CRITICAL
            ))
        elif cpu_pct > CPU_WARNING:
            warnings.append(self._warning(f"CPU usage is high ({cpu_pct:.0f}%)"))

        if mem.percent > RAM_CRITICAL:
            warnings.append(self._warning(
                f"RAM usage is critically high ({mem.percent:.0f}%)", severity=Severity.CRITICAL
            ))
            recommendations.append(Recommendation(
                kind="close-memory-hogs",
                message="Close the applications using the most memory or add RAM.",
                severity=Severity.CRITICAL,
            ))
        elif mem.percent > RAM_WARNING:
            warnings.append(self._warning(f"RAM usage is high ({mem.percent:.0f}%)"))

        processes = _top_processes(
            procs, int(config.get("top_processes", 5)), config.get("sort_by", "memory")
        )

        temperature = None
        if config.get("check_temperature", False):
            temperature = _average_temperature()
            if temperature is not None:
                if temperature > TEMP_CRITICAL:
                    warnings.append(self._warning(
                        f"System temperature is critically high ({temperature:.0f}°C)",
                        severity=Severity.CRITICAL,
                    ))
                    recommendations.append(Recommendation(
                        kind="check-cooling",
                        message="Clean fans and vents; check the cooling system.",
                        severity=Severity.CRITICAL,
                    ))
                elif temperature > TEMP_WARNING:
                    warnings.append(self._warning(
                        f"System temperature is elevated ({temperature:.0f}°C)"
                    ))

        raw = {
            "cpu": {
                "usage_percent": cpu_pct,
                "cores_logical": psutil.cpu_count(logical=True),
                "cores_physical": psutil.cpu_count(logical=False),
            },
            "ram": {
                "total_gb": round(mem.total / _GB, 2),
                "available_gb": round(mem.available / _GB, 2),
                "usage_percent": mem.percent,
            },
            "swap": {
                "total_gb": round(swap.total / _GB, 2),
                "usage_percent": swap.percent,
            },
            "top_processes": processes,
            "temperature_c": temperature,
        }
        return self._make_finding(warnings, recommendations, raw)


def prime_cpu_counters() -> list[psutil.Process]:
    """Take the first per-process CPU reading; it always reports 0.0."""
    procs = []
    for proc in psutil.process_iter(["pid", "name"]):
        try:
            proc.cpu_percent(None)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        procs.append(proc)
    return procs


def _top_processes(procs: list[psutil.Process], limit: int, sort_by: str) -> list[dict[str, Any]]:
    rows = []
    for proc in procs:
        try:
            mem_info = proc.memory_info()
            cpu = proc.cpu_percent(None)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue  # exited or protected since priming
        rows.append({
            "pid": proc.info.get("pid"),
            "name": proc.info.get("name") or "?",
            "memory_mb": round(mem_info.rss / _MB, 1),
            "cpu_percent": cpu or 0.0,
        })
    key = "cpu_percent" if sort_by == "cpu" else "memory_mb"
    rows.sort(key=lambda r: r[key], reverse=True)
    return rows[:limit]


def _average_temperature() -> float | None:
    """Mean current reading over all sensors, or None where unsupported."""
    reader = getattr(psutil, "sensors_temperatures", None)
    if reader is None:
        return None
    try:
        sensors = reader()
    except (OSError, RuntimeError) as e:
        logger.debug("Temperature sensors unavailable: %s", e)
        return None
    readings = [t.current for entries in sensors.values() for t in entries if t.current]
    if not readings:
        return None
    return round(sum(readings) / len(readings), 1)
