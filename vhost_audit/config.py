from __future__ import annotations

import re
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_STATE_FILE = "vhost-audit.state.json"
DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT = "5s"

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_duration_re = re.compile(r"^([+-]?)((?:(?:\d+\.?\d*|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+)$")
_part_re = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``5s``, ``750ms`` or ``1m30s`` into seconds.

    A bare ``0`` is accepted; any other value needs a unit.
    """
    s = (text or "").strip()
    if s in ("0", "+0", "-0"):
        return 0.0
    m = _duration_re.match(s)
    if not m:
        raise ValueError(f"invalid duration {text!r}")
    total = sum(float(num) * _UNITS[unit] for num, unit in _part_re.findall(m.group(2)))
    return -total if m.group(1) == "-" else total


def clean_list(items: Iterable[str]) -> List[str]:
    """Drop empty entries and duplicates, keeping first-seen order."""
    out: List[str] = []
    for item in items:
        item = item.strip()
        if item and item not in out:
            out.append(item)
    return out


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return clean_list(value.split(","))


class AuditConfig(BaseModel):
    config_path: str
    state_path: str = DEFAULT_STATE_FILE
    ignore_servers: List[str] = Field(default_factory=list)
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    timeout: float = Field(default_factory=lambda: parse_duration(DEFAULT_TIMEOUT))
    verify_hash: bool = True
    report_path: Optional[str] = None

    @field_validator("ignore_servers", mode="before")
    @classmethod
    def clean_ignore(cls, v):
        if isinstance(v, str):
            return split_csv(v)
        return clean_list(v or [])

    @field_validator("timeout", mode="before")
    @classmethod
    def parse_timeout(cls, v):
        if isinstance(v, str):
            v = parse_duration(v)
        if isinstance(v, (int, float)) and v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @classmethod
    def build(cls, **values) -> "AuditConfig":
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
