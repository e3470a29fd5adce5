"""Tests for the connectivity probe."""

from __future__ import annotations

import socket
from collections import namedtuple

import pytest
from conftest import FakeRunner

from pcmedic.core.models import Severity
from pcmedic.core.platform import LINUX, WINDOWS
from pcmedic.probes import network
from pcmedic.probes.network import NetworkProbe

IfStats = namedtuple("IfStats", "isup duplex speed mtu")


@pytest.fixture(autouse=True)
def interfaces(monkeypatch):
    stats = {"lo": IfStats(True, 0, 0, 65536), "eth0": IfStats(True, 2, 1000, 1500)}
    monkeypatch.setattr(network.psutil, "net_if_stats", lambda: stats)
    for var in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "NO_PROXY"):
        monkeypatch.delenv(var, raising=False)
    return stats


@pytest.fixture
def dns_ok(monkeypatch):
    monkeypatch.setattr(
        network.socket, "getaddrinfo",
        lambda host, port: [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("142.250.1.1", 0))],
    )


@pytest.fixture
def dns_down(monkeypatch):
    def fail(host, port):
        raise socket.gaierror(-2, "Name or service not known")

    monkeypatch.setattr(network.socket, "getaddrinfo", fail)


class TestNetworkProbe:
    def test_all_good(self, dns_ok):
        runner = FakeRunner()
        finding = NetworkProbe(runner=runner, platform_name=LINUX).collect({})

        assert finding.warnings == ()
        assert runner.calls == ["ping -c 2 8.8.8.8", "ping -c 2 1.1.1.1"]
        assert finding.raw["dns"][0]["addresses"] == ["142.250.1.1"]
        assert {a["name"] for a in finding.raw["adapters"]} == {"lo", "eth0"}

    def test_windows_uses_count_flag(self, dns_ok):
        runner = FakeRunner()
        NetworkProbe(runner=runner, platform_name=WINDOWS).collect({"ping_targets": ["10.0.0.1"]})
        assert runner.calls == ["ping -n 2 10.0.0.1"]

    def test_offline(self, dns_down):
        runner = FakeRunner()
        runner.script("ping", exit_code=1)
        finding = NetworkProbe(runner=runner, platform_name=LINUX).collect({})

        severities = [w.severity for w in finding.warnings]
        assert severities == [Severity.CRITICAL, Severity.CRITICAL]
        assert [r.kind for r in finding.recommendations] == ["reset-network-stack"]

    def test_dns_failure_with_connectivity_recommends_flush(self, dns_down):
        finding = NetworkProbe(runner=FakeRunner(), platform_name=LINUX).collect({})
        assert [r.kind for r in finding.recommendations] == ["flush-dns"]
        assert finding.raw["dns"][0]["resolved"] is False

    def test_partial_reachability_is_a_warning(self, dns_ok):
        runner = FakeRunner()
        runner.script("1.1.1.1", exit_code=1)
        finding = NetworkProbe(runner=runner, platform_name=LINUX).collect({})
        assert len(finding.warnings) == 1
        assert "1.1.1.1" in finding.warnings[0].message

    def test_no_active_adapter(self, interfaces, dns_ok):
        interfaces["eth0"] = IfStats(False, 0, 0, 1500)
        finding = NetworkProbe(runner=FakeRunner(), platform_name=LINUX).collect(
            {"check_dns": False}
        )
        assert finding.warnings[0].message == "No active network adapter found"

    def test_proxy_variables_are_reported(self, dns_ok, monkeypatch):
        monkeypatch.setenv("HTTPS_PROXY", "http://proxy.local:3128")
        finding = NetworkProbe(runner=FakeRunner(), platform_name=LINUX).collect({})
        assert finding.raw["proxy"] == {"HTTPS_PROXY": "http://proxy.local:3128"}
