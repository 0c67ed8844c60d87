from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StatusMessage(str, Enum):
    OK = "OK"
    NO_HOST = "NO_HOST"
    CONN_REFUSED = "CONN_REFUSED"
    CONN_RESET = "CONN_RESET"
    TIMEOUT = "TIMEOUT"
    FAILED_TO_VERIFY_CERTIFICATE = "FAILED_TO_VERIFY_CERTIFICATE"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True, eq=False)
class EndpointGroup:
    """Server names and listen ports taken from one ``server { }`` block.

    Names and ports keep their first-seen order for stable job expansion, but
    two groups are equal when they hold the same sets.
    """

    names: Tuple[str, ...]
    ports: Tuple[str, ...]

    @property
    def key(self) -> Tuple[FrozenSet[str], FrozenSet[str]]:
        return frozenset(self.names), frozenset(self.ports)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EndpointGroup):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def pairs(self) -> List[Tuple[str, str]]:
        return [(name, port) for name in self.names for port in self.ports]


class ProbeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    server_name: str
    port: int
    # 0 when no HTTP response was received
    status_code: int = 0
    status_message: str = StatusMessage.UNKNOWN.value

    @field_validator("status_message", mode="before")
    @classmethod
    def normalize_message(cls, value):
        if isinstance(value, Enum):
            return value.value
        return value

    @property
    def pair(self) -> Tuple[str, int]:
        return self.server_name, self.port


class Regression(BaseModel):
    model_config = ConfigDict(frozen=True)

    server_name: str
    port: int
    old_status_code: int
    new_status_code: int
    status_message: str

    @field_validator("status_message", mode="before")
    @classmethod
    def normalize_message(cls, value):
        if isinstance(value, Enum):
            return value.value
        return value


class Baseline(BaseModel):
    created_at: datetime
    # checked against the live config only when the fingerprint gate is on
    config_hash: str
    server_statuses: List[ProbeResult] = Field(default_factory=list)

    @field_validator("created_at", mode="before")
    @classmethod
    def trim_nanoseconds(cls, value):
        # datetime only holds microseconds
        if isinstance(value, str):
            return re.sub(r"(\.\d{6})\d+", r"\1", value)
        return value

    @field_validator("server_statuses", mode="before")
    @classmethod
    def null_statuses(cls, value):
        return [] if value is None else value
