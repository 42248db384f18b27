"""Typed records produced by a trace."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Hop(BaseModel):
    """One step of a network path.

    A hop with neither address nor hostname is a timeout placeholder.
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    hop_number: int = Field(ge=1)
    address: str | None = None
    hostname: str | None = None
    round_trip_ms: float | None = None

    @model_validator(mode="before")
    @classmethod
    def drop_duplicate_hostname(cls, data: Any) -> Any:
        """A hostname that is just the address is stored as the address only."""
        if isinstance(data, dict):
            hostname = data.get("hostname")
            if hostname is not None and hostname == data.get("address"):
                data = {**data, "hostname": None}
        return data

    @property
    def is_timeout(self) -> bool:
        return self.address is None and self.hostname is None

    def to_event(self) -> dict[str, Any]:
        """Per-hop event payload."""
        return self.model_dump(by_alias=True)


class TraceResult(BaseModel):
    """Terminal record of one trace attempt."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    target: str
    hops: tuple[Hop, ...] = ()
    started_at: datetime
    complete: bool = False
    error: str | None = None

    def to_event(self) -> dict[str, Any]:
        """Completion event payload."""
        return self.model_dump(by_alias=True, mode="json")
