#!/usr/bin/env python

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from csv import DictWriter
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from .config import KnowYourRouteConfig
from .config import load_config as load_modern_config
from .models import Hop, TraceResult
from .traceroute import TraceOrchestrator


def setup_logger(level: str = "INFO", log_file: Path | None = None) -> None:
    """Set up logging."""
    root = logging.getLogger("")
    root.setLevel(level)
    if log_file is not None:
        file_handler = logging.FileHandler(log_file, mode="w")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s %(message)s", datefmt="%m-%d %H:%M"
            )
        )
        root.addHandler(file_handler)
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console)


def load_config(config_file: str | Path | None = None) -> KnowYourRouteConfig:
    """Load configuration using the modern system.

    Args:
        config_file: Path to TOML configuration file. If None, searches standard locations.

    Returns:
        Typed configuration object.
    """
    path = Path(config_file) if config_file else None
    return load_modern_config(path)


def extract_hostname(value: str) -> str | None:
    """Reduce a URL to the host to trace.

    Bare hostnames and IP literals are returned unchanged; a ``:port``
    suffix is dropped.

    Args:
        value: URL, hostname or IP address.

    Returns:
        Hostname or address (IPv6 without brackets), or None if a URL has no host.

    Example:
        >>> extract_hostname("https://cdn.example.net:8443/live/master.m3u8")
        'cdn.example.net'
        >>> extract_hostname("https://[2001:db8::1]/seg.m4s")
        '2001:db8::1'
    """
    value = value.strip()
    if "://" not in value:
        # "host:port" and "[v6]:port"; bare IPv6 literals hold two or more colons
        if not (value.startswith("[") or value.count(":") == 1):
            return value or None
        value = f"//{value}"
    try:
        return urlsplit(value).hostname
    except ValueError:
        return None


def trace(config: KnowYourRouteConfig, target: str) -> TraceResult:
    """Trace the route to a target and wait for the result.

    Args:
        config: Typed configuration object.
        target: Hostname or IP address.

    Returns:
        TraceResult: hops in discovery order and completion status.

    Notes:
        Uses the operating system command traceroute (traceroute6 for IPv6)
        on macOS and Linux and tracert on Windows.

    Example:
        trace(config, "203.0.113.9")
    """
    orchestrator = TraceOrchestrator(config.traceroute)
    return asyncio.run(orchestrator.trace(target))


def hop_row(target: str, hop: Hop) -> dict[str, Any]:
    """Flat CSV row for one hop."""
    return {"target": target, **hop.model_dump()}


def format_hop(hop: Hop) -> str:
    if hop.is_timeout:
        return f"{hop.hop_number:>3}  *"
    name = hop.address or ""
    if hop.hostname:
        name = f"{hop.hostname} ({hop.address})" if hop.address else hop.hostname
    rtt = f"  {hop.round_trip_ms:.3f} ms" if hop.round_trip_ms is not None else ""
    return f"{hop.hop_number:>3}  {name}{rtt}"


async def trace_targets(
    config: KnowYourRouteConfig,
    targets: list[str],
    max_hops: int | None = None,
    per_hop_timeout: int | None = None,
    as_json: bool = False,
) -> list[TraceResult]:
    """Trace each target in turn, printing hops as they arrive."""
    orchestrator = TraceOrchestrator(config.traceroute)
    results = []
    for target in targets:
        if not as_json:
            print(f"route to {target}")
        async for event in orchestrator.stream(target, max_hops, per_hop_timeout):
            if isinstance(event, TraceResult):
                results.append(event)
                if as_json:
                    print(json.dumps(event.to_event()))
                elif event.error:
                    print(f"  ({event.error})")
            elif not as_json:
                print(format_hop(event))
    return results


def main() -> int:
    parser = argparse.ArgumentParser(description="Know Your Route")
    parser.add_argument("target", nargs="*", help="Hostname(s), IP address(es) or URL(s)")
    parser.add_argument("-f", "--file", help="List of targets file")
    parser.add_argument("-c", "--config", help="Configuration file (TOML format)")
    parser.add_argument("-m", "--max-hops", type=int, help="Maximum number of hops")
    parser.add_argument(
        "-w", "--timeout", type=int, dest="per_hop_timeout", help="Seconds per hop"
    )
    parser.add_argument("-o", "--output", help="Output CSV file name")
    parser.add_argument(
        "--json", action="store_true", help="Print each result as a JSON line"
    )
    parser.add_argument(
        "-v", "--verbose", dest="verbose", action="store_true", help="Verbose mode"
    )
    parser.add_argument(
        "--no-header",
        dest="header",
        action="store_false",
        help="Output without header at the first row",
    )
    parser.set_defaults(header=True)

    args = parser.parse_args()

    if args.file is None and len(args.target) == 0:
        parser.error("at least one of target and --file is required")
    for name in ("max_hops", "per_hop_timeout"):
        value = getattr(args, name)
        if value is not None and value < 1:
            parser.error(f"--{name.replace('_', '-')} must be a positive integer")

    config = load_config(args.config)
    setup_logger("DEBUG" if args.verbose else config.logging.level, config.logging.file)

    if args.file:
        with open(args.file) as f:
            args.target.extend(
                a.strip()
                for a in f.read().split("\n")
                if ((a.strip() != "") and not a.startswith("#"))
            )

    targets = []
    for value in args.target:
        host = extract_hostname(value)
        if host is None:
            logging.error(f"Invalid traceroute target: {value}")
            continue
        targets.append(host)

    try:
        results = asyncio.run(
            trace_targets(
                config, targets, args.max_hops, args.per_hop_timeout, args.json
            )
        )
    except KeyboardInterrupt:
        return 130

    if args.output:
        with open(args.output, "w", newline="") as f:
            writer = DictWriter(
                f, fieldnames=config.output.columns, extrasaction="ignore"
            )
            if args.header:
                writer.writeheader()
            for result in results:
                for hop in result.hops:
                    writer.writerow(hop_row(result.target, hop))

    return 0 if len(results) == len(args.target) and all(r.complete for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
