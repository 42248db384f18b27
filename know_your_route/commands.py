#!/usr/bin/env python

"""Platform-specific route-tracing commands.

Uses the tool each platform ships with:
- Windows: tracert
- macOS/Linux: traceroute, or traceroute6 for IPv6 targets
"""

from __future__ import annotations

import platform

DEFAULT_DEADLINE_MARGIN = 10


class UnsupportedPlatformError(Exception):
    """No known route-tracing command for the running operating system."""

    pass


def is_ipv6_target(target: str) -> bool:
    """IPv6 literals are the only targets that contain a colon."""
    return ":" in target


def build_command(
    target: str,
    max_hops: int,
    per_hop_timeout: int,
    *,
    system: str | None = None,
    icmp: bool = True,
    resolve_hostnames: bool = False,
    queries_per_hop: int = 1,
) -> list[str]:
    """Build the argument vector for tracing the route to a target.

    Args:
        target: Bare hostname or IP literal.
        max_hops: Maximum number of hops the tool should probe.
        per_hop_timeout: Seconds to wait for each hop's reply.
        system: Operating system name as reported by ``platform.system()``.
            Defaults to the running system.
        icmp: Probe with ICMP echo instead of UDP (macOS/Linux only).
        resolve_hostnames: Let the tool do reverse-DNS lookups.
        queries_per_hop: Probes sent per hop (macOS/Linux only).

    Returns:
        Command and arguments, ready for process creation.

    Raises:
        UnsupportedPlatformError: If the system has no known command.
        ValueError: If the target is empty, looks like an option or holds
            whitespace or NUL, or a tuning value is not positive.

    Example:
        >>> build_command("192.0.2.1", 20, 2, system="Linux")
        ['traceroute', '-n', '-q', '1', '-I', '-m', '20', '-w', '2', '192.0.2.1']
    """
    if not target or not target.strip():
        raise ValueError("target must be a non-empty hostname or address")
    if target.startswith("-") or "\x00" in target or any(c.isspace() for c in target):
        raise ValueError(f"not a hostname or address: {target!r}")
    for name, value in (
        ("max_hops", max_hops),
        ("per_hop_timeout", per_hop_timeout),
        ("queries_per_hop", queries_per_hop),
    ):
        if value < 1:
            raise ValueError(f"{name} must be a positive integer, got {value}")

    system = (system or platform.system()).lower()
    ipv6 = is_ipv6_target(target)

    match system:
        case "windows":
            cmd = ["tracert"]
            if not resolve_hostnames:
                cmd.append("-d")
            if ipv6:
                cmd.append("-6")
            cmd.extend(["-h", str(max_hops), "-w", str(per_hop_timeout * 1000)])

        case "darwin" | "linux":
            cmd = ["traceroute6" if ipv6 else "traceroute"]
            if not resolve_hostnames:
                cmd.append("-n")
            cmd.extend(["-q", str(queries_per_hop)])
            if icmp:
                cmd.append("-I")
            cmd.extend(["-m", str(max_hops), "-w", str(per_hop_timeout)])

        case _:
            raise UnsupportedPlatformError(f"Unsupported platform: {system}")

    cmd.append(target)
    return cmd


def trace_deadline(
    max_hops: int, per_hop_timeout: int, margin: float = DEFAULT_DEADLINE_MARGIN
) -> float:
    """Overall wall-clock budget, in seconds, for one trace."""
    return max_hops * per_hop_timeout + margin
