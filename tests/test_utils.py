"""Tests for the command-line helpers."""

import csv
import json
import sys

import pytest

from know_your_route.commands import is_ipv6_target
from know_your_route.config import KnowYourRouteConfig
from know_your_route.know_your_route import (
    extract_hostname,
    format_hop,
    hop_row,
    main,
    trace,
)
from know_your_route.models import Hop

TWO_HOPS = """
    print(" 1  10.0.0.1  1.5 ms")
    print(" 2  edge.example.net (203.0.113.9)  9.25 ms")
"""


class TestExtractHostname:
    """Test the extract_hostname function."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("https://cdn.example.net/live/master.m3u8", "cdn.example.net"),
            ("https://cdn.example.net:8443/seg_001.m4s", "cdn.example.net"),
            ("http://[2001:db8::1]:8080/chunk.ts", "2001:db8::1"),
            ("cdn.example.net", "cdn.example.net"),
            ("  203.0.113.9 ", "203.0.113.9"),
            ("2001:db8::1", "2001:db8::1"),
            ("cdn.example.net:443", "cdn.example.net"),
            ("203.0.113.9:8080", "203.0.113.9"),
            ("[2001:db8::1]:443", "2001:db8::1"),
        ],
    )
    def test_extracts(self, value, expected):
        assert extract_hostname(value) == expected

    def test_host_with_port_is_not_traced_as_ipv6(self):
        assert not is_ipv6_target(extract_hostname("cdn.example.net:443"))

    @pytest.mark.parametrize("value", ["", "   ", "file:///tmp/x", "http://[::1/", "[::1"])
    def test_no_host(self, value):
        assert extract_hostname(value) is None


class TestFormatting:
    """Test hop rendering for the console and CSV."""

    def test_format_timeout(self):
        assert format_hop(Hop(hop_number=2)) == "  2  *"

    def test_format_named_hop(self):
        hop = Hop(hop_number=3, address="203.0.113.9", hostname="edge.example.net", round_trip_ms=22.5)
        assert format_hop(hop) == "  3  edge.example.net (203.0.113.9)  22.500 ms"

    def test_format_address_only(self):
        assert format_hop(Hop(hop_number=1, address="10.0.0.1")) == "  1  10.0.0.1"

    def test_hop_row(self):
        row = hop_row("example.com", Hop(hop_number=1, address="10.0.0.1", round_trip_ms=1.0))
        assert row == {
            "target": "example.com",
            "hop_number": 1,
            "address": "10.0.0.1",
            "hostname": None,
            "round_trip_ms": 1.0,
        }


class TestTrace:
    """Test the blocking trace helper and the CLI."""

    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch):
        monkeypatch.setattr(
            "know_your_route.know_your_route.setup_logger", lambda *args: None
        )

    def test_trace(self, fake_tool):
        fake_tool["edge.example.net"] = TWO_HOPS
        result = trace(KnowYourRouteConfig(), "edge.example.net")

        assert result.complete is True
        assert [h.hop_number for h in result.hops] == [1, 2]

    def test_main_writes_csv(self, fake_tool, monkeypatch, tmp_path, capsys):
        fake_tool["edge.example.net"] = TWO_HOPS
        output = tmp_path / "hops.csv"
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(
            sys,
            "argv",
            ["know-your-route", "https://edge.example.net/live.m3u8", "-o", str(output)],
        )

        assert main() == 0

        printed = capsys.readouterr().out
        assert "route to edge.example.net" in printed
        assert "edge.example.net (203.0.113.9)  9.250 ms" in printed
        with open(output, newline="") as f:
            rows = list(csv.DictReader(f))
        assert [r["hop_number"] for r in rows] == ["1", "2"]
        assert rows[1]["address"] == "203.0.113.9"

    def test_main_json_and_failure_status(self, fake_tool, monkeypatch, tmp_path, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(sys, "argv", ["know-your-route", "--json", "missing.example"])

        assert main() == 1

        event = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert event["target"] == "missing.example"
        assert event["complete"] is False
        assert event["hops"] == []

    def test_main_requires_target(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["know-your-route"])
        with pytest.raises(SystemExit):
            main()
