"""Background-process probe: resource hogs and runaway multi-instance processes."""

from __future__ import annotations

import time
from collections import Counter
from typing import Any

import psutil

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.core.platform import WINDOWS
from pcmedic.probes.base import BaseProbe
from pcmedic.probes.resources import prime_cpu_counters

_MB = 1024 ** 2

MEMORY_WARNING_MB = 2000
CPU_NOTICE = 50.0
PROCESS_COUNT_WARNING = 200
INSTANCE_LIMIT = 5

# Programs that legitimately run many copies of themselves.
MULTI_INSTANCE = {
    WINDOWS: {"svchost", "chrome", "msedge", "firefox", "runtimebroker"},
}
MULTI_INSTANCE_DEFAULT = {"chrome", "firefox", "safari", "google chrome helper"}


class BackgroundProcessProbe(BaseProbe):
    """Ranks running processes by CPU and memory with psutil.

    Step config:
        sample_seconds:  Time between the two CPU readings (1.0).
        top:             Processes per ranking (10).
    """

    probe_kind = "background_processes"
    description = "Find resource-hungry background processes"

    def collect(self, config: dict[str, Any]) -> Finding:
        limit = int(config.get("top", 10))
        procs = prime_cpu_counters()
        time.sleep(float(config.get("sample_seconds", 1.0)))

        rows = []
        for proc in procs:
            try:
                mem_info = proc.memory_info()
                cpu = proc.cpu_percent(None)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            rows.append({
                "pid": proc.info.get("pid"),
                "name": proc.info.get("name") or "?",
                "cpu_percent": cpu or 0.0,
                "memory_mb": round(mem_info.rss / _MB),
            })

        top_cpu = sorted(rows, key=lambda r: r["cpu_percent"], reverse=True)[:limit]
        top_memory = sorted(rows, key=lambda r: r["memory_mb"], reverse=True)[:limit]
        suspicious = self._many_instances(rows)

        warnings = []
        recommendations = []
        for row in top_memory:
            if row["memory_mb"] > MEMORY_WARNING_MB:
                warnings.append(self._warning(
                    f"{row['name']} is using {row['memory_mb']} MB of RAM"
                ))
        if top_cpu and top_cpu[0]["cpu_percent"] > CPU_NOTICE:
            warnings.append(self._warning(
                f"{top_cpu[0]['name']} is using significant CPU ({top_cpu[0]['cpu_percent']:.0f}%)",
                severity=Severity.INFO,
            ))
        if suspicious:
            recommendations.append(Recommendation(
                kind="suspicious-processes",
                message=f"Found {len(suspicious)} processes with unusual behavior; they may need investigation.",
            ))
        if len(rows) > PROCESS_COUNT_WARNING:
            warnings.append(self._warning(
                f"{len(rows)} processes running (high number may impact performance)"
            ))
            recommendations.append(Recommendation(
                kind="process-cleanup",
                message="Close unused programs to improve performance.",
                severity=Severity.WARNING,
            ))

        raw = {
            "top_cpu": top_cpu,
            "top_memory": top_memory,
            "suspicious": suspicious,
            "total_count": len(rows),
        }
        return self._make_finding(warnings, recommendations, raw)

    def _many_instances(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        allowed = MULTI_INSTANCE.get(self.platform_name, MULTI_INSTANCE_DEFAULT)
        counts = Counter(_base_name(r["name"]) for r in rows)
        return [
            {"name": name, "instance_count": count, "reason": "Multiple instances running"}
            for name, count in counts.most_common()
            if count > INSTANCE_LIMIT and name not in allowed
        ]


def _base_name(name: str) -> str:
    lowered = name.lower()
    return lowered[:-4] if lowered.endswith(".exe") else lowered
