"""Shared fixtures for the trace tests."""

import sys
import textwrap

import pytest


@pytest.fixture
def fake_tool(monkeypatch):
    """Replace the route-tracing command with a Python script per target.

    Assign ``fake_tool[target] = source`` to choose what the "tool" prints
    and how it exits when tracing that target.
    """
    scripts = {}

    def build(target, max_hops, per_hop_timeout, **kwargs):
        if target not in scripts:
            return ["/nonexistent/know-your-route/traceroute"]
        return [sys.executable, "-c", textwrap.dedent(scripts[target])]

    monkeypatch.setattr("know_your_route.traceroute.build_command", build)
    return scripts
