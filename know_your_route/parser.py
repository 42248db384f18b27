#!/usr/bin/env python

"""Parse single lines of traceroute/tracert output into hops.

Handles the output dialects of the system tools this package drives:

    Linux/macOS traceroute (-n, one query per hop):
         1  192.168.1.1  1.234 ms
         2  *
    Linux/macOS traceroute (name resolution, three queries):
         3  edge.example.net (203.0.113.9)  22.500 ms  21.9 ms  23.1 ms
         4  * * *
    traceroute6:
         9  2001:730:2300::5474:80a1  36.030 ms
         2  2a02-1811-d34-2d00-66fd-96ff-fe79-a484.ip6.access.telenet.be  7.889 ms
    Windows tracert:
          1    <1 ms    <1 ms    <1 ms  192.168.1.1
          2     *        *        *     Request timed out.
          4    10 ms     9 ms     9 ms  edge.example.net [203.0.113.9]

Anything that is not a hop line (banners, blank lines, tool noise) parses
to None.
"""

from __future__ import annotations

import re

from .models import Hop

HOP_NUMBER_RE = re.compile(r"^\s*(\d+)\s+")
# Probe columns that are all "*", then tracert's (possibly localized) message
TIMEOUT_RE = re.compile(r"^\*(?:\s+\*)*(?:\s+(?P<message>.*))?$")
NAMED_ADDRESS_RE = re.compile(
    r"(\S+)\s+(?:\((?P<paren>[0-9a-fA-F:.]+)\)|\[(?P<bracket>[0-9a-fA-F:.]+)\])"
)
IPV4_RE = re.compile(r"^\d{1,3}(?:\.\d{1,3}){3}$")
IPV6_RE = re.compile(r"^[0-9a-fA-F:]*:[0-9a-fA-F:]*:[0-9a-fA-F:.]*(?:%\w+)?$")
HEX_GROUP_RE = re.compile(r"^[0-9a-fA-F]{1,4}$")
LATENCY_RE = re.compile(r"(?<![\w.<-])<?(\d+(?:\.\d+)?)\s*ms(?![\w.-])")
# Probe columns and annotations: "*", "<1", "14", "ms", "14ms", "!H"
PROBE_TOKEN_RE = re.compile(r"^(?:\*|<?\d+(?:\.\d+)?(?:ms)?|ms|!\w*)$")

MIN_DASHED_GROUPS = 4
MAX_DASHED_GROUPS = 8


def decode_dashed_ipv6(hostname: str) -> str | None:
    """Recover an IPv6 address some ISPs encode in reverse-DNS names.

    The leading label of ``2a02-1811-d34-2d00-66fd-96ff-fe79-a484.ip6.example``
    decodes to ``2a02:1811:d34:2d00:66fd:96ff:fe79:a484``.

    Args:
        hostname: Reverse-DNS name.

    Returns:
        Colon-delimited address, or None when the leading label is not four
        to eight hyphen-separated groups of one to four hex digits.
    """
    label = hostname.split(".", 1)[0]
    groups = label.split("-")
    if not MIN_DASHED_GROUPS <= len(groups) <= MAX_DASHED_GROUPS:
        return None
    if not all(HEX_GROUP_RE.match(group) for group in groups):
        return None
    return ":".join(groups)


def _is_address(value: str) -> bool:
    return bool(IPV4_RE.match(value) or IPV6_RE.match(value))


def _named_address(rest: str) -> tuple[str, str] | None:
    """Find ``hostname (address)`` or ``hostname [address]``."""
    for match in NAMED_ADDRESS_RE.finditer(rest):
        address = match.group("paren") or match.group("bracket")
        if _is_address(address):
            return match.group(1), address
    return None


def _responder_token(rest: str) -> str | None:
    for token in rest.split():
        if not PROBE_TOKEN_RE.match(token):
            return token
    return None


def _is_timeout(rest: str) -> bool:
    match = TIMEOUT_RE.match(rest)
    if not match:
        return False
    message = match.group("message")
    if not message:
        return True
    if LATENCY_RE.search(message) or _named_address(message):
        return False
    return not any(_is_address(token) for token in message.split())


def _parse_latency(rest: str) -> float | None:
    match = LATENCY_RE.search(rest)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def parse_line(line: str) -> Hop | None:
    """Parse one line of route-tracing output.

    Args:
        line: A single raw output line, with or without its line ending.

    Returns:
        The hop described by the line, or None if the line is not a hop line.

    Example:
        >>> parse_line(" 3  edge.example.net (203.0.113.9)  22.5 ms")
        Hop(hop_number=3, address='203.0.113.9', hostname='edge.example.net', round_trip_ms=22.5)
        >>> parse_line("traceroute to example.com (93.184.216.34), 20 hops max") is None
        True
    """
    hop_match = HOP_NUMBER_RE.match(line)
    if not hop_match:
        return None

    hop_number = int(hop_match.group(1))
    if hop_number < 1:
        return None

    rest = line[hop_match.end() :].strip()
    if not rest:
        return None

    if _is_timeout(rest):
        return Hop(hop_number=hop_number)

    address = None
    hostname = None

    named = _named_address(rest)
    if named:
        hostname, address = named
    else:
        token = _responder_token(rest)
        if token is None:
            return None
        if _is_address(token):
            address = token
        else:
            hostname = token
            address = decode_dashed_ipv6(token)

    return Hop(
        hop_number=hop_number,
        address=address,
        hostname=hostname,
        round_trip_ms=_parse_latency(rest),
    )
