"""Know Your Route

A Python package to discover the network path to a host in real time:
- Runs the platform's own route-tracing tool (traceroute, traceroute6, tracert)
- Parses its output line by line into typed hops as they are discovered
- Keeps at most one trace running, superseding older ones
- Recovers partial paths from traces that end in an error

Supports macOS, Linux and Windows output dialects.
"""

from importlib.metadata import version

__version__ = version("know_your_route")

from .commands import UnsupportedPlatformError, build_command
from .config import KnowYourRouteConfig, load_config
from .know_your_route import extract_hostname, trace
from .models import Hop, TraceResult
from .parser import parse_line
from .traceroute import LineBuffer, TraceCancelledError, TraceOrchestrator

__all__ = [
    "KnowYourRouteConfig",
    "load_config",
    "Hop",
    "TraceResult",
    "parse_line",
    "build_command",
    "UnsupportedPlatformError",
    "LineBuffer",
    "TraceOrchestrator",
    "TraceCancelledError",
    "extract_hostname",
    "trace",
]
