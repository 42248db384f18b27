"""Configuration system using Pydantic for validation and type safety."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator


class TracerouteConfig(BaseModel):
    """Route-tracing tool settings."""

    max_hops: int = Field(default=20, gt=0)
    per_hop_timeout: int = Field(default=2, gt=0)
    queries_per_hop: int = Field(default=1, gt=0)
    icmp: bool = True
    resolve_hostnames: bool = False
    deadline_margin: float = Field(default=10, ge=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: Path | None = None

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Accept only level names the logging module knows."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown logging level: {v}")
        return level


class OutputConfig(BaseModel):
    """Output configuration."""

    columns: list[str] = Field(
        default=[
            "target",
            "hop_number",
            "address",
            "hostname",
            "round_trip_ms",
        ]
    )


class KnowYourRouteConfig(BaseModel):
    """Main configuration for Know Your Route."""

    traceroute: TracerouteConfig = TracerouteConfig()
    logging: LoggingConfig = LoggingConfig()
    output: OutputConfig = OutputConfig()


ENV_PREFIX = "KNOW_YOUR_ROUTE_"
CONFIG_LOCATIONS = (
    Path("know_your_route.toml"),
    Path("~/.config/know-your-route/config.toml"),
    Path("~/.know-your-route.toml"),
)


def _env_value(raw: str) -> Any:
    # Digits first so numeric settings such as "1" stay integers
    if raw.isdigit():
        return int(raw)
    match raw.lower():
        case "true" | "yes" | "on":
            return True
        case "false" | "no" | "off":
            return False
    return raw


def load_from_env() -> dict[str, Any]:
    """Collect ``KNOW_YOUR_ROUTE_<SECTION>_<FIELD>`` variables by section.

    ``KNOW_YOUR_ROUTE_TRACEROUTE_MAX_HOPS=30`` becomes
    ``{"traceroute": {"max_hops": 30}}``.
    """
    sections: dict[str, dict[str, Any]] = {}
    for key, raw in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        section, _, name = key[len(ENV_PREFIX) :].lower().partition("_")
        if section and name:
            sections.setdefault(section, {})[name] = _env_value(raw)
    return sections


def find_config_file() -> Path | None:
    """First existing file of: ./know_your_route.toml, the XDG config dir, ~."""
    for location in CONFIG_LOCATIONS:
        path = location.expanduser()
        if path.exists():
            return path
    return None


def load_config(config_file: Path | None = None) -> KnowYourRouteConfig:
    """Merge defaults, the TOML file and the environment, in that order.

    Raises:
        ConfigurationError: If the file cannot be read or a value is invalid.
    """
    config_file = config_file or find_config_file()
    settings: dict[str, Any] = {}
    if config_file and config_file.exists():
        try:
            with open(config_file, "rb") as f:
                settings = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load config file {config_file}: {e}"
            ) from e

    for section, values in load_from_env().items():
        settings.setdefault(section, {}).update(values)

    try:
        return KnowYourRouteConfig.model_validate(settings)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def create_default_config(output_file: Path) -> None:
    """Create a default configuration file with sensible defaults."""

    toml_content = """# Know Your Route Configuration

[traceroute]
max_hops = 20
per_hop_timeout = 2    # seconds
queries_per_hop = 1
icmp = true            # ICMP echo probes (macOS/Linux); may need privileges
resolve_hostnames = false
deadline_margin = 10   # seconds added to max_hops * per_hop_timeout

[logging]
level = "INFO"
# file = "know_your_route.log"

[output]
columns = [
    "target",
    "hop_number",
    "address",
    "hostname",
    "round_trip_ms",
]
"""

    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(toml_content)


class ConfigurationError(Exception):
    """Configuration-related errors."""

    pass
