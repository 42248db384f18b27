"""Tests for platform command selection."""

import pytest

from know_your_route.commands import (
    UnsupportedPlatformError,
    build_command,
    is_ipv6_target,
    trace_deadline,
)


class TestBuildCommand:
    """Test build_command for each supported platform."""

    @pytest.mark.parametrize("system", ["Linux", "Darwin"])
    def test_unix_ipv4(self, system):
        assert build_command("192.0.2.1", 20, 2, system=system) == [
            "traceroute",
            "-n",
            "-q",
            "1",
            "-I",
            "-m",
            "20",
            "-w",
            "2",
            "192.0.2.1",
        ]

    def test_unix_ipv6_uses_traceroute6(self):
        cmd = build_command("2001:db8::1", 15, 3, system="Linux")
        assert cmd[0] == "traceroute6"
        assert cmd[-1] == "2001:db8::1"
        assert cmd[cmd.index("-m") + 1] == "15"
        assert cmd[cmd.index("-w") + 1] == "3"

    def test_unix_options(self):
        cmd = build_command(
            "example.com",
            30,
            1,
            system="Darwin",
            icmp=False,
            resolve_hostnames=True,
            queries_per_hop=3,
        )
        assert cmd == ["traceroute", "-q", "3", "-m", "30", "-w", "1", "example.com"]

    def test_windows_ipv4(self):
        assert build_command("example.com", 20, 2, system="Windows") == [
            "tracert",
            "-d",
            "-h",
            "20",
            "-w",
            "2000",
            "example.com",
        ]

    def test_windows_ipv6(self):
        cmd = build_command("2001:db8::1", 20, 2, system="Windows")
        assert cmd[:3] == ["tracert", "-d", "-6"]

    @pytest.mark.parametrize("system", ["FreeBSD", "Plan9", ""])
    def test_unsupported_platform(self, system, monkeypatch):
        monkeypatch.setattr("platform.system", lambda: system)
        with pytest.raises(UnsupportedPlatformError, match="Unsupported platform"):
            build_command("example.com", 20, 2, system=system or None)

    def test_running_platform_is_default(self, monkeypatch):
        monkeypatch.setattr("platform.system", lambda: "Windows")
        assert build_command("example.com", 20, 2)[0] == "tracert"

    @pytest.mark.parametrize(
        "target,max_hops,timeout",
        [("", 20, 2), ("   ", 20, 2), ("example.com", 0, 2), ("example.com", 20, 0)],
    )
    def test_invalid_arguments(self, target, max_hops, timeout):
        with pytest.raises(ValueError):
            build_command(target, max_hops, timeout, system="Linux")

    @pytest.mark.parametrize("system", ["Linux", "Windows"])
    @pytest.mark.parametrize(
        "target", ["-f5", "--help", "a\x00b", "example.com 10", "example.com\n"]
    )
    def test_rejects_unsafe_targets(self, system, target):
        with pytest.raises(ValueError, match="not a hostname or address"):
            build_command(target, 20, 2, system=system)


class TestHelpers:
    """Test address family detection and deadlines."""

    @pytest.mark.parametrize(
        "target,expected",
        [
            ("2001:db8::1", True),
            ("::1", True),
            ("192.0.2.1", False),
            ("cdn.example.net", False),
        ],
    )
    def test_is_ipv6_target(self, target, expected):
        assert is_ipv6_target(target) is expected

    def test_trace_deadline(self):
        assert trace_deadline(20, 2) == 50
        assert trace_deadline(30, 3, margin=0) == 90
