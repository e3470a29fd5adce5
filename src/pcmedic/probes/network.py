"""Connectivity probe: adapters, reachability, DNS and proxy settings."""

from __future__ import annotations

import logging
import os
import socket
from typing import Any

import psutil

from pcmedic.core.models import Finding, Recommendation, Severity
from pcmedic.core.platform import WINDOWS
from pcmedic.probes.base import BaseProbe

logger = logging.getLogger(__name__)

DEFAULT_TARGETS = ("8.8.8.8", "1.1.1.1")
DEFAULT_DNS_HOSTS = ("www.google.com",)
_PROXY_VARS = ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "NO_PROXY")


class NetworkProbe(BaseProbe):
    """Checks that the machine can reach the internet.

    Step config:
        ping_targets: Hosts to ping (8.8.8.8, 1.1.1.1).
        check_dns:    Resolve DEFAULT_DNS_HOSTS (True).
        dns_hosts:    Override the names to resolve.
    """

    probe_kind = "network"
    description = "Test network adapters, connectivity and DNS"

    def collect(self, config: dict[str, Any]) -> Finding:
        warnings = []
        recommendations = []

        adapters = _adapters()
        if adapters and not any(a["is_up"] for a in adapters if not a["loopback"]):
            warnings.append(self._warning(
                "No active network adapter found", severity=Severity.CRITICAL
            ))

        pings = [self._ping(t) for t in config.get("ping_targets", DEFAULT_TARGETS)]
        reachable = [p for p in pings if p["reachable"]]
        if pings and not reachable:
            warnings.append(self._warning(
                "No internet connectivity: all ping targets unreachable",
                severity=Severity.CRITICAL,
            ))
            recommendations.append(Recommendation(
                kind="reset-network-stack",
                message="Restart the router and reset the network adapter.",
                severity=Severity.CRITICAL,
            ))
        elif len(reachable) < len(pings):
            failed = ", ".join(p["target"] for p in pings if not p["reachable"])
            warnings.append(self._warning(f"Intermittent connectivity: {failed} unreachable"))

        dns: list[dict[str, Any]] = []
        if config.get("check_dns", True):
            dns = [_resolve(h) for h in config.get("dns_hosts", DEFAULT_DNS_HOSTS)]
            if dns and not any(d["resolved"] for d in dns):
                warnings.append(self._warning(
                    "DNS resolution is failing", severity=Severity.CRITICAL
                ))
                if reachable:
                    recommendations.append(Recommendation(
                        kind="flush-dns",
                        message="Connectivity works but names do not resolve; "
                        "flush the DNS cache or change DNS servers.",
                        severity=Severity.WARNING,
                    ))

        proxies = {k: os.environ[k] for k in _PROXY_VARS if os.environ.get(k)}

        raw = {
            "adapters": adapters,
            "connectivity": pings,
            "dns": dns,
            "proxy": proxies,
        }
        return self._make_finding(warnings, recommendations, raw)

    def _ping(self, target: str) -> dict[str, Any]:
        flag = "-n" if self.platform_name == WINDOWS else "-c"
        result = self._run(f"ping {flag} 2 {target}")
        return {"target": target, "reachable": result.ok}


def _adapters() -> list[dict[str, Any]]:
    try:
        stats = psutil.net_if_stats()
    except OSError as e:
        logger.warning("Could not read network interfaces: %s", e)
        return []
    return [
        {
            "name": name,
            "is_up": st.isup,
            "speed_mbps": st.speed,
            "loopback": name.lower().startswith(("lo", "loopback")),
        }
        for name, st in sorted(stats.items())
    ]


def _resolve(host: str) -> dict[str, Any]:
    try:
        infos = socket.getaddrinfo(host, None)
    except (socket.gaierror, OSError) as e:
        return {"host": host, "resolved": False, "error": str(e)}
    addresses = sorted({info[4][0] for info in infos})
    return {"host": host, "resolved": True, "addresses": addresses}
